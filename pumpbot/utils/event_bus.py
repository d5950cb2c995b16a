# --------------------------------------------------------------------
# utils/event_bus.py
# --------------------------------------------------------------------
"""A light asyncio pub/sub. Publishing never blocks the caller: payloads are
queued and a background worker delivers them to subscribers in order."""
from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Union[Awaitable[None], None]]


class EventBus:
    def __init__(self) -> None:
        self._subs: Dict[str, List[Handler]] = defaultdict(list)
        self._q: Optional[asyncio.Queue] = None
        # background task started lazily on first publish
        self._task: Optional[asyncio.Task] = None

    # -------------------------------------------------------------- #
    def subscribe(self, topic: str, fn: Handler) -> None:
        self._subs[topic].append(fn)

    def unsubscribe(self, topic: str, fn: Handler) -> None:
        try:
            self._subs[topic].remove(fn)
        except ValueError:
            pass

    def publish(self, topic: str, payload: Any) -> None:
        if not self._subs.get(topic):
            return
        if self._q is None:
            self._q = asyncio.Queue()
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._worker())
        self._q.put_nowait((topic, payload))

    async def drain(self) -> None:
        """Wait until every queued payload has been delivered."""
        if self._q is not None:
            await self._q.join()

    async def close(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    # -------------------------------------------------------------- #
    async def _worker(self) -> None:
        while True:
            topic, payload = await self._q.get()
            try:
                for fn in list(self._subs.get(topic, [])):
                    try:
                        res = fn(payload)
                        if asyncio.iscoroutine(res):
                            await res
                    except Exception:  # keep bus alive
                        logger.exception("[event_bus] handler for %r failed", topic)
            finally:
                self._q.task_done()
