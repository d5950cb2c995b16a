"""
strategy/volume.py
------------------
Volume generator: buy, hold briefly, sell everything, wait, repeat.

Trade sizes and delays are drawn uniformly from the configured ranges and
cycles are capped per rolling hour. Net exposure returns to zero at the end
of every cycle.
"""
from __future__ import annotations

import random
from collections import deque
from typing import Any, Deque, Dict, Optional

from pumpbot.models.config import VolumeConfig
from pumpbot.modules.strategy.base import Action, Buy, DecisionPolicy, Hold, Sell, TickContext

HOUR_S = 3600
# never commit more than this share of available balance to one cycle
MAX_BALANCE_SHARE = 0.9


class VolumePolicy(DecisionPolicy):
    config_class = VolumeConfig
    config: VolumeConfig

    def __init__(self, config: VolumeConfig, rng: Optional[random.Random] = None) -> None:
        super().__init__(config)
        self.rng = rng or random.Random()
        self.cycles = 0
        self.volume = 0.0
        self._cycle_starts: Deque[float] = deque()
        self._delay_ms: Optional[int] = None

    def next_delay_ms(self) -> Optional[int]:
        return self._delay_ms

    def _draw(self, low: int, high: int) -> int:
        return int(self.rng.uniform(low, high))

    def evaluate(self, ctx: TickContext) -> Action:
        cfg = self.config

        if ctx.position is not None:
            self._delay_ms = self._draw(cfg.delay_min_ms, cfg.delay_max_ms)
            return Sell(f"volume cycle {self.cycles + 1} close")

        while self._cycle_starts and ctx.now - self._cycle_starts[0] >= HOUR_S:
            self._cycle_starts.popleft()
        if len(self._cycle_starts) >= cfg.max_cycles_per_hour:
            wait_s = HOUR_S - (ctx.now - self._cycle_starts[0])
            self._delay_ms = int(wait_s * 1000) + 1
            return Hold("hourly cycle cap reached")

        self._delay_ms = self._draw(cfg.hold_min_ms, cfg.hold_max_ms)
        if cfg.trade_amount_min is not None:
            return Buy(
                f"volume cycle {self.cycles + 1} open",
                amount=self.rng.uniform(cfg.trade_amount_min, cfg.trade_amount_max),
                fraction=MAX_BALANCE_SHARE,
            )
        share = self.rng.uniform(cfg.trade_percent_min, cfg.trade_percent_max)
        return Buy(f"volume cycle {self.cycles + 1} open", fraction=min(share, MAX_BALANCE_SHARE))

    def on_executed(self, action: Action, ctx: TickContext, amount: float) -> None:
        self.volume += amount
        ctx.stats.increment("volume", amount)
        if isinstance(action, Buy):
            self._cycle_starts.append(ctx.now)
        else:
            self.cycles += 1
            ctx.stats.increment("cycles")

    def status(self) -> Dict[str, Any]:
        return {
            "cycles": self.cycles,
            "volume": self.volume,
            "cycles_last_hour": len(self._cycle_starts),
        }
