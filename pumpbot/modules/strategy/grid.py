"""
strategy/grid.py
----------------
Staged entries at fixed percentage steps below a base price.

Levels are computed once from the base price (fetched at start, or the
first tick's price if that fails). Each level buys when the price crosses
*down through* its trigger: the previous price must be above the trigger
and the current one at or below it, so sitting under a trigger never
re-fires it. A filled level sells its own entry and re-arms once that
entry shows ``take_profit_percent``. A fall of ``emergency_stop_percent``
below the base liquidates everything and halts the engine.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from pumpbot.models.config import GridConfig
from pumpbot.models.position import GridLevel
from pumpbot.modules.strategy.base import (
    HOLD,
    Action,
    Buy,
    DecisionPolicy,
    Sell,
    SetupContext,
    TickContext,
    reached,
)

BASE_PRICE_ATTEMPTS = 3
BASE_PRICE_RETRY_S = 2.0


class GridPolicy(DecisionPolicy):
    config_class = GridConfig
    config: GridConfig

    def __init__(self, config: GridConfig) -> None:
        super().__init__(config)
        self.base_price: Optional[float] = None
        self.levels: List[GridLevel] = []
        self._last_price: Optional[float] = None

    async def setup(self, ctx: SetupContext) -> None:
        for attempt in range(1, BASE_PRICE_ATTEMPTS + 1):
            price = await ctx.get_price()
            if price:
                self.build_levels(price)
                ctx.log(logging.INFO, self._describe())
                return
            if attempt < BASE_PRICE_ATTEMPTS:
                await ctx.clock.sleep(BASE_PRICE_RETRY_S)
        ctx.log(logging.WARNING, "base price unavailable, grid will anchor on the first tick")

    def build_levels(self, base_price: float) -> None:
        cfg = self.config
        self.base_price = base_price
        # the base counts as the previous price, so the first tick can cross
        self._last_price = base_price
        self.levels = []
        for i in range(1, cfg.grid_levels + 1):
            drop = cfg.grid_spacing_percent * i
            self.levels.append(
                GridLevel(index=i, trigger_price=base_price * (1 - drop / 100), drop_percent=drop)
            )

    def _describe(self) -> str:
        triggers = ", ".join(f"L{lv.index}@{lv.trigger_price:.10g}" for lv in self.levels)
        return f"grid base {self.base_price:.10g}: {triggers}"

    def level(self, index: int) -> Optional[GridLevel]:
        return next((lv for lv in self.levels if lv.index == index), None)

    # ------------------------------------------------------------------ #
    def evaluate(self, ctx: TickContext) -> Action:
        cfg = self.config
        price = ctx.price
        previous, self._last_price = self._last_price, price

        if self.base_price is None:
            self.build_levels(price)
            return HOLD

        drop_from_base = (self.base_price - price) / self.base_price * 100
        if reached(drop_from_base, cfg.emergency_stop_percent):
            return Sell(f"emergency stop: {drop_from_base:.2f}% below base", halt=True)

        for lv in self.levels:
            if lv.filled and lv.fill_price:
                gain = (price - lv.fill_price) / lv.fill_price * 100
                if reached(gain, cfg.take_profit_percent):
                    return Sell(f"level {lv.index} take-profit {gain:+.2f}%", tag=lv.index)

        if previous is None:
            return HOLD
        for lv in self.levels:
            if not lv.filled and previous > lv.trigger_price >= price:
                return Buy(
                    f"level {lv.index} crossed ({lv.drop_percent:g}% below base)",
                    fraction=cfg.balance_per_level,
                    max_position_fraction=cfg.max_total_invested,
                    tag=lv.index,
                )
        return HOLD

    def on_executed(self, action: Action, ctx: TickContext, amount: float) -> None:
        if isinstance(action, Buy) and action.tag is not None:
            self.level(action.tag).fill(ctx.price, amount)
            ctx.stats.increment("levels_hit")
        elif isinstance(action, Sell):
            if action.tag is not None:
                self.level(action.tag).rearm()
            else:
                for lv in self.levels:
                    lv.rearm()

    def status(self) -> Dict[str, Any]:
        return {
            "base_price": self.base_price,
            "filled_levels": sum(1 for lv in self.levels if lv.filled),
            "levels": [
                {
                    "index": lv.index,
                    "trigger_price": lv.trigger_price,
                    "filled": lv.filled,
                    "fill_price": lv.fill_price,
                }
                for lv in self.levels
            ],
        }
