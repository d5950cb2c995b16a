"""
utils/clock.py
--------------
Time source used by the feed, trackers and engines. Swapped for a virtual
clock in tests so no real timers are needed.
"""
from __future__ import annotations

import asyncio
import time
from typing import Optional


class Clock:
    """Wall-clock time plus asyncio sleeping."""

    def now(self) -> float:
        return time.time()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(seconds, 0))

    async def wait(self, event: asyncio.Event, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds or until ``event`` fires.

        Returns True when woken by the event. The event is cleared either way.
        """
        try:
            await asyncio.wait_for(event.wait(), timeout=max(timeout, 0))
            return True
        except asyncio.TimeoutError:
            return False
        finally:
            event.clear()


_DEFAULT: Optional[Clock] = None


def default_clock() -> Clock:
    global _DEFAULT
    if _DEFAULT is None:
        _DEFAULT = Clock()
    return _DEFAULT
