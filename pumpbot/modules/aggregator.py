"""
aggregator.py
-------------
HTTP client for the external token-price aggregator, the last resort of
the price fallback chain.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

import aiohttp

from pumpbot.models.instrument import Instrument

DEFAULT_AGGREGATOR_URL = "https://tokens.whistle.ninja"


class AggregatorClient:
    """GET ``{base_url}/token/{mint}`` → ``{"price": float, ...}``."""

    def __init__(
        self,
        base_url: str = DEFAULT_AGGREGATOR_URL,
        *,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = 5.0,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._session = session
        self._own_session = session is None
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self.logger = logger or logging.getLogger(self.__class__.__name__)
        self.metrics = {"requests_sent": 0, "errors": 0}

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._own_session = True
        return self._session

    async def get_price(self, instrument: Instrument) -> Optional[float]:
        session = await self._get_session()
        url = f"{self.base_url}/token/{instrument.mint}"
        try:
            async with session.get(url) as resp:
                self.metrics["requests_sent"] += 1
                if resp.status != 200:
                    raise aiohttp.ClientResponseError(
                        resp.request_info, resp.history, status=resp.status
                    )
                data = await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            self.metrics["errors"] += 1
            self.logger.warning("Aggregator request failed %s: %s", instrument.short, exc)
            return None

        price = data.get("price") if isinstance(data, dict) else None
        try:
            price = float(price)
        except (TypeError, ValueError):
            return None
        return price if price > 0 else None

    async def close(self) -> None:
        if self._own_session and self._session is not None and not self._session.closed:
            await self._session.close()
