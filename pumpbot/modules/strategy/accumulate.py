"""
strategy/accumulate.py
----------------------
Two-phase accumulate / distribute market making.

* accumulate – buy ``buy_amount`` every ``buy_interval_ms`` until the
  holding reaches ``max_accumulation`` of the balance;
* distribute – entered once unrealised profit reaches
  ``sell_trigger_percent``; sells ``sell_chunk_percent`` of the position per
  tick, or everything once ``target_profit_percent`` is reached.

The way back to accumulate needs profit to fall below half the trigger, so
the phase does not flap around the threshold. A stop-loss closes the whole
position from either phase and resets to accumulate.
"""
from __future__ import annotations

from typing import Any, Dict

from pumpbot.models.config import AccumulateConfig
from pumpbot.modules.strategy.base import HOLD, Action, Buy, DecisionPolicy, Sell, TickContext, reached

ACCUMULATE = "accumulate"
DISTRIBUTE = "distribute"

# share of available balance a single accumulation buy may use
BUY_BALANCE_SHARE = 0.1


class AccumulateDistributePolicy(DecisionPolicy):
    config_class = AccumulateConfig
    config: AccumulateConfig

    def __init__(self, config: AccumulateConfig) -> None:
        super().__init__(config)
        self.phase = ACCUMULATE

    def _set_phase(self, phase: str, ctx: TickContext) -> None:
        if phase != self.phase:
            self.phase = phase
            ctx.stats.increment("phase_changes")

    def evaluate(self, ctx: TickContext) -> Action:
        cfg = self.config
        position = ctx.position

        if position is None:
            self._set_phase(ACCUMULATE, ctx)
        else:
            pl = ctx.profit_percent
            if pl <= -cfg.stop_loss_percent:
                self._set_phase(ACCUMULATE, ctx)
                return Sell(f"stop-loss {pl:.2f}%")
            if self.phase == ACCUMULATE and reached(pl, cfg.sell_trigger_percent):
                self._set_phase(DISTRIBUTE, ctx)
            elif self.phase == DISTRIBUTE and pl < cfg.sell_trigger_percent * 0.5:
                self._set_phase(ACCUMULATE, ctx)

            if self.phase == DISTRIBUTE:
                if reached(pl, cfg.target_profit_percent):
                    return Sell(f"target profit {pl:+.2f}%")
                chunk_value = position.tokens * ctx.price * cfg.sell_chunk_percent
                if chunk_value < ctx.min_trade:
                    return Sell(f"distribute remainder, chunk too small ({pl:+.2f}%)")
                return Sell(f"distribute chunk at {pl:+.2f}%", portion=cfg.sell_chunk_percent)

        if ctx.since_last_action * 1000 >= cfg.buy_interval_ms:
            return Buy(
                "accumulate",
                amount=cfg.buy_amount,
                fraction=BUY_BALANCE_SHARE,
                max_position_fraction=cfg.max_accumulation,
            )
        return HOLD

    def status(self) -> Dict[str, Any]:
        return {"phase": self.phase}
