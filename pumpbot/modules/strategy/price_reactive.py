"""
strategy/price_reactive.py
--------------------------
Buy dips from the recent high, sell pumps.

Entry: price dropped ``buy_dip_percent`` or more below the window high and
nothing is held. Exits are checked in a fixed order so a stop-loss always
wins over a take-profit: stop-loss, take-profit, then a fast momentum exit
when price ran ``momentum_multiplier`` × ``sell_pump_percent`` above the
window low while in profit.
"""
from __future__ import annotations

from pumpbot.models.config import PriceReactiveConfig
from pumpbot.modules.strategy.base import HOLD, Action, Buy, DecisionPolicy, Sell, TickContext, reached


class PriceReactivePolicy(DecisionPolicy):
    config_class = PriceReactiveConfig
    config: PriceReactiveConfig

    @property
    def min_samples(self) -> int:
        return 3

    def evaluate(self, ctx: TickContext) -> Action:
        cfg = self.config
        if ctx.position is not None:
            return self._exit(ctx)

        drop = ctx.window.drop_from_high(ctx.price)
        if reached(drop, cfg.buy_dip_percent):
            return Buy(
                f"dip {drop:.2f}% from high",
                fraction=cfg.trade_percent,
                max_position_fraction=cfg.max_position_percent,
            )
        return HOLD

    def _exit(self, ctx: TickContext) -> Action:
        cfg = self.config
        pl = ctx.profit_percent

        if pl <= -cfg.stop_loss_percent:
            return Sell(f"stop-loss {pl:.2f}%")
        if reached(pl, cfg.sell_pump_percent):
            return Sell(f"take-profit {pl:+.2f}%")

        rise = ctx.window.rise_from_low(ctx.price)
        if pl > 0 and reached(rise, cfg.sell_pump_percent * cfg.momentum_multiplier):
            return Sell(f"momentum {rise:.2f}% from low")
        return HOLD
