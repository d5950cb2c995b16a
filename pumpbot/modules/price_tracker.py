"""
price_tracker.py
----------------
Real-time price tracking per instrument.

A ``PriceTracker`` runs in the background and keeps the latest price fresh
two ways at once:

* a push channel (``PriceStream``, e.g. a websocket subscription) delivering
  updates as soon as trades happen, when one is configured;
* a polling safety net that re-fetches the price whenever the push channel
  has been silent for more than two poll intervals.

Every accepted update is written to the shared ``PriceCache`` and handed to
listeners through the ``EventBus`` so a slow listener never stalls the
tracker. ``TrackerRegistry`` hands out one tracker per instrument.
"""
from __future__ import annotations

import asyncio
import json
import logging
import math
from abc import ABC, abstractmethod
from collections import deque
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    Deque,
    Dict,
    List,
    Optional,
)

import websockets

from pumpbot.models.instrument import Instrument
from pumpbot.models.price import PriceSample, PriceSource, PriceUpdate, VenueTag
from pumpbot.modules.price_cache import PriceCache
from pumpbot.utils.clock import Clock, default_clock
from pumpbot.utils.event_bus import EventBus

Fetcher = Callable[[Instrument], Awaitable[Optional[PriceSample]]]
Listener = Callable[[PriceUpdate], Any]

# moves smaller than this (percent) are treated as noise
NOISE_PERCENT = 0.01


# ---------------------------------------------------------------------------- #
# push channels
# ---------------------------------------------------------------------------- #
class PriceStream(ABC):
    """Low-latency source of price pushes for one instrument."""

    @abstractmethod
    def updates(self, instrument: Instrument) -> AsyncIterator[float]:
        ...


def _default_subscribe(instrument: Instrument) -> Dict[str, Any]:
    return {"method": "subscribePrice", "params": {"mint": instrument.mint}}


def _default_parse(raw: Any) -> Optional[float]:
    try:
        msg = json.loads(raw)
    except (TypeError, ValueError):
        return None
    if not isinstance(msg, dict):
        return None
    price = msg.get("price")
    if price is None and isinstance(msg.get("data"), dict):
        price = msg["data"].get("price")
    try:
        price = float(price)
    except (TypeError, ValueError):
        return None
    return price if price > 0 else None


class WebSocketPriceStream(PriceStream):
    """Subscribe to a websocket endpoint and yield every parsed price.

    Reconnects with exponential backoff (1 s doubling up to 30 s) until the
    consuming task is cancelled.
    """

    def __init__(
        self,
        url: str,
        *,
        subscribe: Callable[[Instrument], Dict[str, Any]] = _default_subscribe,
        parse: Callable[[Any], Optional[float]] = _default_parse,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.url = url
        self._subscribe = subscribe
        self._parse = parse
        self.logger = logger or logging.getLogger(self.__class__.__name__)

    async def updates(self, instrument: Instrument) -> AsyncIterator[float]:
        backoff = 1
        while True:
            try:
                async with websockets.connect(self.url, ping_interval=20) as ws:
                    await ws.send(json.dumps(self._subscribe(instrument)))
                    self.logger.info("WS subscribed → %s for %s", self.url, instrument.short)
                    backoff = 1
                    async for raw in ws:
                        price = self._parse(raw)
                        if price is not None:
                            yield price
            except (websockets.exceptions.WebSocketException, OSError) as exc:
                self.logger.warning("WS price stream for %s dropped: %s", instrument.short, exc)
            await asyncio.sleep(backoff)
            backoff = min(backoff * 2, 30)


# ---------------------------------------------------------------------------- #
# tracker
# ---------------------------------------------------------------------------- #
class PriceTracker:
    def __init__(
        self,
        instrument: Instrument,
        fetcher: Fetcher,
        *,
        cache: PriceCache,
        stream: Optional[PriceStream] = None,
        poll_interval: float = 1.0,
        history_size: int = 100,
        bus: Optional[EventBus] = None,
        clock: Optional[Clock] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.instrument = instrument
        self._fetcher = fetcher
        self.cache = cache
        self.stream = stream
        self.poll_interval = poll_interval
        self.bus = bus or EventBus()
        self.clock = clock or default_clock()
        self.logger = logger or logging.getLogger(self.__class__.__name__)

        self.current_price: Optional[float] = None
        self.last_update: Optional[float] = None
        self.venue: Optional[VenueTag] = None
        self.history: Deque[PriceSample] = deque(maxlen=history_size)
        self.is_tracking = False

        self._topic = f"price:{instrument.mint}"
        self._migration_topic = f"migration:{instrument.mint}"
        self._poll_task: Optional[asyncio.Task] = None
        self._stream_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------ #
    # lifecycle
    # ------------------------------------------------------------------ #
    async def start(self) -> Optional[float]:
        if self.is_tracking:
            return self.current_price
        self.is_tracking = True
        self.logger.info("[PriceTracker] Starting for %s", self.instrument.short)

        await self.refresh()
        loop = asyncio.get_running_loop()
        if self.stream is not None:
            self._stream_task = loop.create_task(self._stream_loop())
        self._poll_task = loop.create_task(self._poll_loop())

        self.logger.info(
            "[PriceTracker] Tracking %s on %s – initial price %s",
            self.instrument.short,
            self.venue.value if self.venue else "unknown venue",
            self.current_price,
        )
        return self.current_price

    async def stop(self) -> None:
        self.is_tracking = False
        for task in (self._stream_task, self._poll_task):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._stream_task = self._poll_task = None
        self.logger.info("[PriceTracker] Stopped for %s", self.instrument.short)

    # ------------------------------------------------------------------ #
    # listeners
    # ------------------------------------------------------------------ #
    def add_listener(self, fn: Listener) -> None:
        self.bus.subscribe(self._topic, fn)

    def remove_listener(self, fn: Listener) -> None:
        self.bus.unsubscribe(self._topic, fn)

    def on_migration(self, fn: Callable[[VenueTag], Any]) -> None:
        self.bus.subscribe(self._migration_topic, fn)

    # ------------------------------------------------------------------ #
    # queries
    # ------------------------------------------------------------------ #
    def get_price(self) -> Optional[float]:
        return self.current_price

    def age(self) -> float:
        if self.last_update is None:
            return math.inf
        return self.clock.now() - self.last_update

    def get_history(self, count: int = 20) -> List[PriceSample]:
        return list(self.history)[-count:]

    def _recent(self, window_s: float) -> List[float]:
        start = self.clock.now() - window_s
        return [s.price for s in self.history if s.timestamp >= start]

    def price_change(self, window_s: float = 60.0) -> Dict[str, float]:
        prices = self._recent(window_s)
        if len(prices) < 2:
            return {"change": 0.0, "percent": 0.0}
        old, new = prices[0], prices[-1]
        return {
            "change": new - old,
            "percent": (new - old) / old * 100,
            "high": max(prices),
            "low": min(prices),
        }

    def volatility(self, window_s: float = 60.0) -> float:
        """Standard deviation of sample-to-sample returns, in percent."""
        prices = self._recent(window_s)
        if len(prices) < 3:
            return 0.0
        returns = [(b - a) / a for a, b in zip(prices, prices[1:])]
        mean = sum(returns) / len(returns)
        variance = sum((r - mean) ** 2 for r in returns) / len(returns)
        return math.sqrt(variance) * 100

    # ------------------------------------------------------------------ #
    # update paths
    # ------------------------------------------------------------------ #
    async def refresh(self) -> None:
        """One direct fetch through the fetcher (used by the poll loop)."""
        try:
            sample = await self._fetcher(self.instrument)
        except Exception as exc:
            self.logger.warning("[PriceTracker] Fetch error for %s: %s", self.instrument.short, exc)
            return
        if sample is None:
            return
        if sample.venue is not None and sample.venue != self.venue:
            previous, self.venue = self.venue, sample.venue
            if previous is VenueTag.BONDING_CURVE and sample.venue is VenueTag.AMM:
                self.logger.info("[PriceTracker] %s migrated to %s", self.instrument.short, sample.venue.value)
                self.bus.publish(self._migration_topic, sample.venue)
        self._update(sample.price, "poll")

    async def _poll_loop(self) -> None:
        while self.is_tracking:
            await self.clock.sleep(self.poll_interval)
            # with a live push channel, poll only once it has gone quiet
            streaming = self._stream_task is not None and not self._stream_task.done()
            if not streaming or self.age() > self.poll_interval * 2:
                await self.refresh()

    async def _stream_loop(self) -> None:
        try:
            async for price in self.stream.updates(self.instrument):
                self._update(price, "stream")
        except asyncio.CancelledError:
            raise
        except Exception:
            self.logger.exception("[PriceTracker] Stream for %s crashed – polling only", self.instrument.short)

    def _update(self, price: float, source: str) -> bool:
        if price is None or price <= 0:
            return False
        old = self.current_price
        if old is not None and abs(price - old) / old * 100 < NOISE_PERCENT:
            # still proves the price is live
            self.last_update = self.clock.now()
            return False

        now = self.clock.now()
        self.current_price = price
        self.last_update = now
        self.history.append(PriceSample(price=price, timestamp=now, source=PriceSource.TRACKER, venue=self.venue))
        self.cache.put(self.instrument, price, self.venue, PriceSource.TRACKER)

        change = (price - old) / old * 100 if old else 0.0
        self.bus.publish(
            self._topic,
            PriceUpdate(
                price=price,
                previous_price=old,
                change_percent=change,
                timestamp=now,
                source=source,
                venue=self.venue,
            ),
        )
        return True


# ---------------------------------------------------------------------------- #
# registry
# ---------------------------------------------------------------------------- #
class TrackerRegistry:
    """Owns at most one tracker per instrument.

    ``start`` is idempotent: a second call for a tracked instrument returns the
    existing tracker and only adds a reference. The tracker stops when the
    last reference is released or on ``shutdown()``.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        cache: PriceCache,
        *,
        stream_factory: Optional[Callable[[Instrument], Optional[PriceStream]]] = None,
        poll_interval: float = 1.0,
        bus: Optional[EventBus] = None,
        clock: Optional[Clock] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._fetcher = fetcher
        self.cache = cache
        self._stream_factory = stream_factory
        self.poll_interval = poll_interval
        self.bus = bus or EventBus()
        self.clock = clock or default_clock()
        self.logger = logger or logging.getLogger(self.__class__.__name__)
        self._trackers: Dict[Instrument, PriceTracker] = {}
        self._refs: Dict[Instrument, int] = {}

    def get(self, instrument: Instrument) -> Optional[PriceTracker]:
        return self._trackers.get(instrument)

    def __contains__(self, instrument: Instrument) -> bool:
        return instrument in self._trackers

    def __len__(self) -> int:
        return len(self._trackers)

    async def start(self, instrument: Instrument, listener: Optional[Listener] = None) -> PriceTracker:
        tracker = self._trackers.get(instrument)
        if tracker is not None:
            self._refs[instrument] += 1
            if listener is not None:
                tracker.add_listener(listener)
            return tracker

        stream = self._stream_factory(instrument) if self._stream_factory else None
        tracker = PriceTracker(
            instrument,
            self._fetcher,
            cache=self.cache,
            stream=stream,
            poll_interval=self.poll_interval,
            bus=self.bus,
            clock=self.clock,
            logger=self.logger,
        )
        # register before awaiting so concurrent callers share this tracker
        self._trackers[instrument] = tracker
        self._refs[instrument] = 1
        if listener is not None:
            tracker.add_listener(listener)
        await tracker.start()
        return tracker

    async def stop(self, instrument: Instrument, listener: Optional[Listener] = None) -> bool:
        """Release one reference; return True if the tracker was stopped."""
        tracker = self._trackers.get(instrument)
        if tracker is None:
            return False
        if listener is not None:
            tracker.remove_listener(listener)
        self._refs[instrument] -= 1
        if self._refs[instrument] > 0:
            return False
        del self._trackers[instrument]
        del self._refs[instrument]
        await tracker.stop()
        return True

    async def shutdown(self) -> None:
        trackers = list(self._trackers.values())
        self._trackers.clear()
        self._refs.clear()
        for tracker in trackers:
            await tracker.stop()
        await self.bus.close()
