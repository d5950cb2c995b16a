"""
strategy/trend_follower.py
--------------------------
Moving-average crossover with hysteresis.

trend = up   when (fast - slow) / slow >= min_cross_strength %
        down when it is <= -min_cross_strength %
        otherwise unchanged

Entries happen only on the tick the trend turns up. While holding, the
position exits on take-profit, stop-loss or an up → down reversal, and may
be scaled into once while it is winning and the trend is still up.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from pumpbot.models.config import TrendFollowerConfig
from pumpbot.modules.strategy.base import HOLD, Action, Buy, DecisionPolicy, Sell, TickContext, reached

UP = "up"
DOWN = "down"
NEUTRAL = "neutral"

SCALE_IN_FACTOR = 0.5


class TrendFollowerPolicy(DecisionPolicy):
    config_class = TrendFollowerConfig
    config: TrendFollowerConfig

    def __init__(self, config: TrendFollowerConfig) -> None:
        super().__init__(config)
        self.trend = NEUTRAL
        self.strength: Optional[float] = None
        self.entry_amount: Optional[float] = None
        self.scaled_in = False

    @property
    def min_samples(self) -> int:
        return self.config.slow_period

    @property
    def window_capacity(self) -> int:
        return self.config.window_capacity

    def _update_trend(self, ctx: TickContext) -> str:
        cfg = self.config
        fast = ctx.window.moving_average(cfg.fast_period)
        slow = ctx.window.moving_average(cfg.slow_period)
        self.strength = (fast - slow) / slow * 100

        previous = self.trend
        if reached(self.strength, cfg.min_cross_strength):
            self.trend = UP
        elif reached(-self.strength, cfg.min_cross_strength):
            self.trend = DOWN
        if self.trend != previous:
            ctx.stats.increment("trend_changes")
        return previous

    def evaluate(self, ctx: TickContext) -> Action:
        cfg = self.config
        previous = self._update_trend(ctx)

        if ctx.position is None:
            if self.trend == UP and previous != UP:
                return Buy(
                    f"trend up ({self.strength:+.2f}%)",
                    fraction=cfg.trade_percent,
                    max_position_fraction=cfg.max_position_percent,
                )
            return HOLD

        pl = ctx.profit_percent
        if pl <= -cfg.stop_loss_percent:
            return Sell(f"stop-loss {pl:.2f}%")
        if reached(pl, cfg.take_profit_percent):
            return Sell(f"take-profit {pl:+.2f}%")
        # still holding in a downtrend means an earlier reversal exit failed
        if self.trend == DOWN:
            return Sell(f"trend reversal ({self.strength:+.2f}%) at {pl:+.2f}%")

        if (
            cfg.allow_scale_in
            and not self.scaled_in
            and self.trend == UP
            and self.entry_amount is not None
            and reached(pl, cfg.scale_in_trigger)
        ):
            return Buy(
                f"scale in at {pl:+.2f}%",
                amount=self.entry_amount * SCALE_IN_FACTOR,
                fraction=SCALE_IN_FACTOR,
                max_position_fraction=cfg.max_position_percent,
            )
        return HOLD

    def on_executed(self, action: Action, ctx: TickContext, amount: float) -> None:
        if isinstance(action, Buy):
            if self.entry_amount is None:
                self.entry_amount = amount
            else:
                self.scaled_in = True
        elif ctx.position is None or ctx.position.is_empty:
            self.entry_amount = None
            self.scaled_in = False

    def status(self) -> Dict[str, Any]:
        return {"trend": self.trend, "strength": self.strength, "scaled_in": self.scaled_in}
