"""
models/price.py
---------------
Price samples, cache entries and venue status records.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class PriceSource(str, Enum):
    TRACKER = "tracker"
    RPC = "rpc"
    EXTERNAL_API = "external_api"


class VenueTag(str, Enum):
    BONDING_CURVE = "bonding_curve"   # continuous-issuance, pre-migration
    AMM = "amm"                       # liquidity pool, post-migration


@dataclass(frozen=True)
class PriceSample:
    price: float
    timestamp: float
    source: PriceSource
    venue: Optional[VenueTag] = None

    def __post_init__(self) -> None:
        if not self.price > 0:
            raise ValueError(f"price must be positive, got {self.price!r}")


@dataclass(frozen=True)
class PriceCacheEntry:
    price: float
    timestamp: float
    venue: Optional[VenueTag]
    source: PriceSource

    def age(self, now: float) -> float:
        return now - self.timestamp


@dataclass(frozen=True)
class PriceUpdate:
    """Push notification emitted by a tracker for every accepted price."""

    price: float
    previous_price: Optional[float]
    change_percent: float
    timestamp: float
    source: str
    venue: Optional[VenueTag]


@dataclass(frozen=True)
class VenueStatus:
    migrated: bool
    venue: VenueTag
    liquidity: float = 0.0
    market_cap: float = 0.0
    price: Optional[float] = None

    @classmethod
    def for_venue(cls, venue: VenueTag, **extra) -> "VenueStatus":
        return cls(migrated=venue is VenueTag.AMM, venue=venue, **extra)
