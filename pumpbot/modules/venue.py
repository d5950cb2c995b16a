"""
venue.py
--------
Contracts for the external collaborators the engine drives.

Key management, transaction building/signing and account-layout parsing
live behind these interfaces. A ``Venue`` trades one instrument on one
market (bonding curve or AMM pool); a ``ChainGateway`` answers account
reads (migration status, wallet balance).
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional

from pumpbot.exceptions import ConfigurationError
from pumpbot.models.instrument import Instrument
from pumpbot.models.price import VenueStatus, VenueTag

LAMPORTS_PER_SOL = 1_000_000_000


class Venue(ABC):
    """One trading venue. Implementations submit at most once per call."""

    tag: VenueTag

    @abstractmethod
    async def buy(self, wallet: Any, instrument: Instrument, amount: float, slippage: float) -> str:
        """Spend ``amount`` base currency; return the transaction signature."""

    @abstractmethod
    async def sell(self, wallet: Any, instrument: Instrument, amount: Any, slippage: float) -> str:
        """Sell ``amount`` tokens (or ``ALL``); return the transaction signature."""

    @abstractmethod
    async def get_price(self, instrument: Instrument) -> Optional[float]:
        """Spot price in base currency per token, or None if unknown."""


class ChainGateway(ABC):
    @abstractmethod
    async def get_venue_status(self, instrument: Instrument) -> VenueStatus:
        ...

    @abstractmethod
    async def get_balance(self, wallet: Any) -> int:
        """Wallet balance in the smallest base unit (lamports)."""


def check_venues(venues: Mapping[VenueTag, Venue]) -> None:
    missing = [tag.value for tag in VenueTag if tag not in venues]
    if missing:
        raise ConfigurationError(f"no venue configured for: {', '.join(missing)}")


async def resolve_venue(
    gateway: ChainGateway, venues: Mapping[VenueTag, Venue], instrument: Instrument
) -> Venue:
    """Pick the venue for ``instrument`` from its current migration status."""
    status = await gateway.get_venue_status(instrument)
    tag = VenueTag.AMM if status.migrated else VenueTag.BONDING_CURVE
    return venues[tag]
