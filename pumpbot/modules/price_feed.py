"""
price_feed.py
-------------
Single entry point engines use to read a price.

Lookup order per instrument:

1. the live tracker, if it has a price younger than ``tracker_ttl``;
2. the shared cache, if its entry is still fresh;
3. a direct query of the venue currently serving the instrument;
4. the public aggregator, only when the direct query failed.

Each fallback writes the cache with its own ``PriceSource`` so engines
sharing an instrument reuse the result.
"""
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from pumpbot.models.instrument import Instrument
from pumpbot.models.price import PriceSample, PriceSource, VenueTag
from pumpbot.modules.aggregator import AggregatorClient
from pumpbot.modules.price_cache import PriceCache
from pumpbot.modules.price_tracker import Listener, PriceTracker, TrackerRegistry
from pumpbot.modules.venue import ChainGateway, Venue, resolve_venue
from pumpbot.utils.clock import Clock, default_clock

DEFAULT_TRACKER_TTL = 5.0


class PriceFeed:
    def __init__(
        self,
        gateway: ChainGateway,
        venues: Mapping[VenueTag, Venue],
        *,
        cache: Optional[PriceCache] = None,
        aggregator: Optional[AggregatorClient] = None,
        registry: Optional[TrackerRegistry] = None,
        clock: Optional[Clock] = None,
        tracker_ttl: float = DEFAULT_TRACKER_TTL,
        logger: Optional[logging.Logger] = None,
        **tracker_kwargs: Any,
    ) -> None:
        self.gateway = gateway
        self.venues = venues
        self.clock = clock or default_clock()
        self.cache = cache or PriceCache(clock=self.clock)
        self.aggregator = aggregator
        self.tracker_ttl = tracker_ttl
        self.logger = logger or logging.getLogger(self.__class__.__name__)
        self.registry = registry or TrackerRegistry(
            self.fetch_fresh, self.cache, clock=self.clock, logger=self.logger, **tracker_kwargs
        )

    # ------------------------------------------------------------------ #
    async def get_price(self, instrument: Instrument) -> Optional[float]:
        sample = await self.get_sample(instrument)
        return sample.price if sample else None

    async def get_sample(self, instrument: Instrument) -> Optional[PriceSample]:
        tracker = self.registry.get(instrument)
        if tracker is not None and tracker.current_price is not None and tracker.age() < self.tracker_ttl:
            return PriceSample(
                price=tracker.current_price,
                timestamp=tracker.last_update,
                source=PriceSource.TRACKER,
                venue=tracker.venue,
            )

        entry = self.cache.get(instrument)
        if entry is not None:
            return PriceSample(price=entry.price, timestamp=entry.timestamp, source=entry.source, venue=entry.venue)

        try:
            return await self.fetch_fresh(instrument)
        except Exception as exc:
            self.logger.warning("[PriceFeed] Direct price query for %s failed: %s", instrument.short, exc)

        return await self._fetch_external(instrument)

    async def fetch_fresh(self, instrument: Instrument) -> Optional[PriceSample]:
        """Query the serving venue directly; errors propagate to the caller."""
        venue = await resolve_venue(self.gateway, self.venues, instrument)
        price = await venue.get_price(instrument)
        if price is None or price <= 0:
            return None
        entry = self.cache.put(instrument, price, venue.tag, PriceSource.RPC)
        return PriceSample(price=price, timestamp=entry.timestamp, source=PriceSource.RPC, venue=venue.tag)

    async def _fetch_external(self, instrument: Instrument) -> Optional[PriceSample]:
        if self.aggregator is None:
            return None
        price = await self.aggregator.get_price(instrument)
        if price is None:
            return None
        # keep the last known venue tag if any
        known = self.cache.peek(instrument)
        venue = known.venue if known else None
        entry = self.cache.put(instrument, price, venue, PriceSource.EXTERNAL_API)
        return PriceSample(price=price, timestamp=entry.timestamp, source=PriceSource.EXTERNAL_API, venue=venue)

    # ------------------------------------------------------------------ #
    async def start_tracking(self, instrument: Instrument, listener: Optional[Listener] = None) -> PriceTracker:
        return await self.registry.start(instrument, listener)

    async def stop_tracking(self, instrument: Instrument, listener: Optional[Listener] = None) -> bool:
        return await self.registry.stop(instrument, listener)

    def tracker(self, instrument: Instrument) -> Optional[PriceTracker]:
        return self.registry.get(instrument)

    async def close(self) -> None:
        await self.registry.shutdown()
        if self.aggregator is not None:
            await self.aggregator.close()
