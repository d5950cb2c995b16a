"""
strategy/pump_hunter.py
-----------------------
Dip/pump trading that knows which venue the instrument trades on.

The bonding curve gets conservative settings, the AMM pool aggressive
ones. Venue status is re-read every tick; when it changes while a position
is open, the take-profit for the rest of that position is scaled down by
``migration_take_profit_factor`` to catch the post-migration jump early.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from pumpbot.models.config import PumpHunterConfig
from pumpbot.models.price import VenueTag
from pumpbot.modules.strategy.base import HOLD, Action, Buy, DecisionPolicy, Sell, TickContext, reached

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VenueSettings:
    buy_dip_percent: float
    trade_percent: float
    sell_pump_percent: float


class PumpHunterPolicy(DecisionPolicy):
    config_class = PumpHunterConfig
    config: PumpHunterConfig
    needs_venue_status = True

    def __init__(self, config: PumpHunterConfig) -> None:
        super().__init__(config)
        self.venue: Optional[VenueTag] = None
        self.migration_detected = False
        self.settings = {
            VenueTag.BONDING_CURVE: VenueSettings(
                config.bonding_buy_dip_percent, config.bonding_trade_percent, config.bonding_sell_pump_percent
            ),
            VenueTag.AMM: VenueSettings(
                config.swap_buy_dip_percent, config.swap_trade_percent, config.swap_sell_pump_percent
            ),
        }

    @property
    def min_samples(self) -> int:
        return 3

    def take_profit_target(self) -> float:
        target = self.settings[self.venue].sell_pump_percent
        if self.migration_detected:
            target *= self.config.migration_take_profit_factor
        return target

    def evaluate(self, ctx: TickContext) -> Action:
        cfg = self.config
        tag = ctx.venue_status.venue
        if self.venue is not None and tag != self.venue:
            logger.info("%s venue changed %s → %s", ctx.instrument.short, self.venue.value, tag.value)
            ctx.stats.increment("migrations")
            if ctx.position is not None:
                self.migration_detected = True
        self.venue = tag
        settings = self.settings[tag]

        if ctx.position is not None:
            pl = ctx.profit_percent
            if pl <= -cfg.stop_loss_percent:
                return Sell(f"stop-loss {pl:.2f}% on {tag.value}")
            target = self.take_profit_target()
            if reached(pl, target):
                return Sell(f"take-profit {pl:+.2f}% (target {target:.1f}%) on {tag.value}")
            rise = ctx.window.rise_from_low(ctx.price)
            if reached(rise, cfg.momentum_exit_percent) and pl > cfg.momentum_min_profit_percent:
                return Sell(f"momentum {rise:.2f}% from low on {tag.value}")
            return HOLD

        drop = ctx.window.drop_from_high(ctx.price)
        if reached(drop, settings.buy_dip_percent):
            return Buy(
                f"dip {drop:.2f}% on {tag.value}",
                fraction=settings.trade_percent,
                max_position_fraction=cfg.max_position_percent,
            )
        return HOLD

    def on_executed(self, action: Action, ctx: TickContext, amount: float) -> None:
        if self.venue is VenueTag.AMM:
            ctx.stats.increment("amm_trades")
        if isinstance(action, Sell) and (ctx.position is None or ctx.position.is_empty):
            self.migration_detected = False

    def status(self) -> Dict[str, Any]:
        return {
            "venue": self.venue.value if self.venue else None,
            "migration_detected": self.migration_detected,
            "take_profit_target": self.take_profit_target() if self.venue else None,
        }
