# modules/router.py
"""
Turns a strategy decision into a safety-checked trade request.

The router re-reads the wallet balance before every submission, keeps a
fixed gas reserve aside and refuses dust. The venue is resolved from the
instrument's migration status on every call since a position may span a
migration. Submission failures are never retried here; they surface as
``ExecutionError`` and the engine decides what to do next tick.
"""
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from pumpbot.exceptions import DataUnavailableError, ExecutionError
from pumpbot.models.instrument import Instrument
from pumpbot.models.price import VenueStatus, VenueTag
from pumpbot.models.trade_event import ALL, TradeReceipt
from pumpbot.modules.venue import LAMPORTS_PER_SOL, ChainGateway, Venue, check_venues, resolve_venue
from pumpbot.utils.clock import Clock, default_clock

GAS_RESERVE = 0.005
MIN_TRADE = 0.005
# below this much spendable balance nothing is worth sizing
MIN_AVAILABLE = 0.01


class ExecutionRouter:
    def __init__(
        self,
        gateway: ChainGateway,
        venues: Mapping[VenueTag, Venue],
        wallet: Any,
        *,
        gas_reserve: float = GAS_RESERVE,
        min_trade: float = MIN_TRADE,
        clock: Optional[Clock] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        check_venues(venues)
        self.gateway = gateway
        self.venues = venues
        self.wallet = wallet
        self.gas_reserve = gas_reserve
        self.min_trade = min_trade
        self.clock = clock or default_clock()
        self.logger = logger or logging.getLogger(self.__class__.__name__)

    # ------------------------------------------------------------------ #
    # balance
    # ------------------------------------------------------------------ #
    async def balance(self) -> float:
        """Live wallet balance in base currency."""
        try:
            lamports = await self.gateway.get_balance(self.wallet)
        except Exception as exc:
            raise DataUnavailableError(f"balance read failed: {exc}") from exc
        return lamports / LAMPORTS_PER_SOL

    async def available_balance(self) -> float:
        return max(0.0, await self.balance() - self.gas_reserve)

    async def venue_status(self, instrument: Instrument) -> VenueStatus:
        try:
            return await self.gateway.get_venue_status(instrument)
        except Exception as exc:
            raise DataUnavailableError(f"venue status read failed: {exc}") from exc

    async def plan_buy(
        self,
        *,
        fraction: Optional[float] = None,
        amount: Optional[float] = None,
        max_position_fraction: Optional[float] = None,
        held: float = 0.0,
    ) -> Optional[float]:
        """Size a buy against the live balance.

        ``amount`` is a fixed size, ``fraction`` a share of available funds;
        with both given the smaller wins. ``max_position_fraction`` caps the
        total holding (``held`` plus the new buy) as a share of
        available + held. Returns None when nothing sensible can be bought.
        """
        available = await self.available_balance()
        if available <= MIN_AVAILABLE:
            self.logger.info("Insufficient balance: %.4f available", available)
            return None

        candidates = []
        if amount is not None:
            candidates.append(amount)
        if fraction is not None:
            candidates.append(available * fraction)
        size = min(candidates) if candidates else available

        if max_position_fraction is not None:
            headroom = max_position_fraction * (available + held) - held
            if headroom <= 0:
                self.logger.info(
                    "Max position reached: %.4f held, cap %.0f%%", held, max_position_fraction * 100
                )
                return None
            size = min(size, headroom)

        size = min(size, available)
        if size < self.min_trade:
            self.logger.info("Trade size %.6f below minimum %.4f", size, self.min_trade)
            return None
        return size

    # ------------------------------------------------------------------ #
    # submission
    # ------------------------------------------------------------------ #
    async def buy(self, instrument: Instrument, amount: float, slippage: float) -> Optional[TradeReceipt]:
        available = await self.available_balance()
        if amount > available:
            self.logger.info(
                "Buy %s skipped: %.4f requested, %.4f available", instrument.short, amount, available
            )
            return None
        if amount < self.min_trade:
            self.logger.info("Buy %s skipped: %.6f below minimum %.4f", instrument.short, amount, self.min_trade)
            return None

        venue = await self._venue_for("buy", instrument)
        try:
            signature = await venue.buy(self.wallet, instrument, amount, slippage)
        except Exception as exc:
            raise ExecutionError("buy", instrument.short, str(exc)) from exc

        self.logger.info("BUY %s %.4f on %s → %s", instrument.short, amount, venue.tag.value, signature)
        return TradeReceipt(
            signature=signature,
            side="buy",
            instrument=instrument.mint,
            venue=venue.tag,
            amount=amount,
            submitted_at=self.clock.now(),
        )

    async def sell(self, instrument: Instrument, amount: Any = ALL, slippage: float = 0.25) -> Optional[TradeReceipt]:
        """Sell ``amount`` tokens (or ``ALL``). Needs only the gas reserve."""
        balance = await self.balance()
        if balance < self.gas_reserve:
            self.logger.info(
                "Sell %s skipped: %.4f balance cannot cover fees", instrument.short, balance
            )
            return None

        venue = await self._venue_for("sell", instrument)
        try:
            signature = await venue.sell(self.wallet, instrument, amount, slippage)
        except Exception as exc:
            raise ExecutionError("sell", instrument.short, str(exc)) from exc

        self.logger.info("SELL %s %r on %s → %s", instrument.short, amount, venue.tag.value, signature)
        return TradeReceipt(
            signature=signature,
            side="sell",
            instrument=instrument.mint,
            venue=venue.tag,
            amount=amount,
            submitted_at=self.clock.now(),
        )

    async def _venue_for(self, side: str, instrument: Instrument) -> Venue:
        try:
            return await resolve_venue(self.gateway, self.venues, instrument)
        except Exception as exc:
            raise ExecutionError(side, instrument.short, f"venue status unavailable: {exc}") from exc
