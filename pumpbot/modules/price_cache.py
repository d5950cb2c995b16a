"""
price_cache.py
--------------
Process-wide time-to-live cache of the latest price per instrument.

Each entry has a single writer (the instrument's tracker or the fallback
fetch); any number of engines read it. Reads hand out the immutable entry
so no locking is needed.
"""
from __future__ import annotations

from typing import Dict, Optional

from pumpbot.models.instrument import Instrument
from pumpbot.models.price import PriceCacheEntry, PriceSource, VenueTag
from pumpbot.utils.clock import Clock, default_clock

CACHE_TTL_MS = 500


class PriceCache:
    def __init__(self, ttl_ms: int = CACHE_TTL_MS, clock: Optional[Clock] = None) -> None:
        self.ttl = ttl_ms / 1000
        self.clock = clock or default_clock()
        self._entries: Dict[Instrument, PriceCacheEntry] = {}

    def put(
        self,
        instrument: Instrument,
        price: float,
        venue: Optional[VenueTag],
        source: PriceSource,
    ) -> PriceCacheEntry:
        entry = PriceCacheEntry(price=price, timestamp=self.clock.now(), venue=venue, source=source)
        self._entries[instrument] = entry
        return entry

    def get(self, instrument: Instrument) -> Optional[PriceCacheEntry]:
        """Entry younger than the TTL, else None."""
        entry = self._entries.get(instrument)
        if entry is not None and entry.age(self.clock.now()) < self.ttl:
            return entry
        return None

    def peek(self, instrument: Instrument) -> Optional[PriceCacheEntry]:
        """Latest entry regardless of age."""
        return self._entries.get(instrument)

    def __contains__(self, instrument: Instrument) -> bool:
        return instrument in self._entries
