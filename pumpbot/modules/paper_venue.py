"""
paper_venue.py
--------------
In-memory stand-in for the chain: a wallet balance, token holdings and
fills priced from an injected price function. ``PaperExchange`` answers the
gateway reads; ``PaperVenue`` trades on one of its two venues. An
instrument counts as migrated once its market cap reaches
``migration_market_cap``.
"""
from __future__ import annotations

import logging
import uuid
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from pumpbot.exceptions import VenueError
from pumpbot.models.instrument import Instrument
from pumpbot.models.price import VenueStatus, VenueTag
from pumpbot.models.trade_event import ALL
from pumpbot.modules.venue import LAMPORTS_PER_SOL, ChainGateway, Venue

PriceFn = Callable[[Instrument], Awaitable[Optional[float]]]

TOKEN_SUPPLY = 1_000_000_000
MIGRATION_MARKET_CAP = 400.0   # base currency
FEE_PERCENT = 1.0


class PaperExchange(ChainGateway):
    def __init__(
        self,
        balance: float,
        price_fn: PriceFn,
        *,
        migration_market_cap: float = MIGRATION_MARKET_CAP,
        supply: float = TOKEN_SUPPLY,
        fee_percent: float = FEE_PERCENT,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.balance = balance
        self.price_fn = price_fn
        self.migration_market_cap = migration_market_cap
        self.supply = supply
        self.fee = fee_percent / 100
        self.logger = logger or logging.getLogger(self.__class__.__name__)
        self.holdings: Dict[Instrument, float] = {}
        self.migrated: Set[Instrument] = set()

    def venues(self) -> Dict[VenueTag, "PaperVenue"]:
        return {tag: PaperVenue(self, tag) for tag in VenueTag}

    async def get_balance(self, wallet: Any) -> int:
        return int(self.balance * LAMPORTS_PER_SOL)

    async def get_venue_status(self, instrument: Instrument) -> VenueStatus:
        price = await self.price_fn(instrument)
        market_cap = price * self.supply if price else 0.0
        if instrument not in self.migrated and market_cap >= self.migration_market_cap:
            self.migrated.add(instrument)
            self.logger.info("[paper] %s migrated at market cap %.2f", instrument.short, market_cap)
        venue = VenueTag.AMM if instrument in self.migrated else VenueTag.BONDING_CURVE
        return VenueStatus.for_venue(venue, market_cap=market_cap, price=price)

    async def _price(self, instrument: Instrument) -> float:
        price = await self.price_fn(instrument)
        if not price:
            raise VenueError(f"no price for {instrument.short}")
        return price

    async def fill_buy(self, instrument: Instrument, amount: float) -> str:
        if amount > self.balance:
            raise VenueError(f"insufficient balance: {amount:.4f} > {self.balance:.4f}")
        price = await self._price(instrument)
        tokens = amount / price * (1 - self.fee)
        self.balance -= amount
        self.holdings[instrument] = self.holdings.get(instrument, 0.0) + tokens
        return f"paper-{uuid.uuid4().hex[:16]}"

    async def fill_sell(self, instrument: Instrument, amount: Any) -> str:
        held = self.holdings.get(instrument, 0.0)
        tokens = held if amount is ALL else min(float(amount), held)
        if tokens <= 0:
            raise VenueError(f"no {instrument.short} tokens to sell")
        price = await self._price(instrument)
        self.balance += tokens * price * (1 - self.fee)
        self.holdings[instrument] = held - tokens
        return f"paper-{uuid.uuid4().hex[:16]}"


class PaperVenue(Venue):
    def __init__(self, exchange: PaperExchange, tag: VenueTag) -> None:
        self.exchange = exchange
        self.tag = tag

    async def buy(self, wallet: Any, instrument: Instrument, amount: float, slippage: float) -> str:
        return await self.exchange.fill_buy(instrument, amount)

    async def sell(self, wallet: Any, instrument: Instrument, amount: Any, slippage: float) -> str:
        return await self.exchange.fill_sell(instrument, amount)

    async def get_price(self, instrument: Instrument) -> Optional[float]:
        return await self.exchange.price_fn(instrument)
