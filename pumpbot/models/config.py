"""
models/config.py
----------------
Validated, immutable configuration per strategy variant.

Option names follow the operator-facing camelCase spelling
(``buyDipPercent``) and are also accepted in snake_case. Percent options are
expressed in percent units (15 == 15%), fraction options in ``(0, 1]``.
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class StrategyConfig(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    check_interval_ms: int = Field(5000, gt=0)
    price_window_size: int = Field(12, ge=2)
    slippage: float = Field(0.30, gt=0, le=1)
    use_tracker: bool = True
    wake_on_update: bool = True

    @property
    def check_interval(self) -> float:
        return self.check_interval_ms / 1000


class PriceReactiveConfig(StrategyConfig):
    buy_dip_percent: float = Field(15, gt=0, lt=100)
    sell_pump_percent: float = Field(20, gt=0)
    stop_loss_percent: float = Field(25, gt=0, le=100)
    momentum_multiplier: float = Field(1.5, gt=0)
    trade_percent: float = Field(0.20, gt=0, le=1)
    max_position_percent: float = Field(0.50, gt=0, le=1)

    @model_validator(mode="after")
    def _trade_within_cap(self):
        if self.trade_percent > self.max_position_percent:
            raise ValueError("tradePercent must not exceed maxPositionPercent")
        return self


class GridConfig(StrategyConfig):
    grid_levels: int = Field(4, ge=1)
    grid_spacing_percent: float = Field(12, gt=0)
    take_profit_percent: float = Field(15, gt=0)
    balance_per_level: float = Field(0.15, gt=0, le=1)
    max_total_invested: float = Field(0.60, gt=0, le=1)
    emergency_stop_percent: float = Field(50, gt=0, le=100)

    @model_validator(mode="after")
    def _levels_above_zero(self):
        if self.grid_levels * self.grid_spacing_percent >= 100:
            raise ValueError("gridLevels * gridSpacingPercent must stay below 100")
        return self


class AccumulateConfig(StrategyConfig):
    price_window_size: int = Field(20, ge=2)
    buy_amount: float = Field(0.02, gt=0)
    buy_interval_ms: int = Field(30000, ge=0)
    max_accumulation: float = Field(0.30, gt=0, le=1)
    sell_trigger_percent: float = Field(15, gt=0)
    sell_chunk_percent: float = Field(0.25, gt=0, le=1)
    target_profit_percent: float = Field(20, gt=0)
    stop_loss_percent: float = Field(30, gt=0, le=100)

    @model_validator(mode="after")
    def _target_above_trigger(self):
        if self.target_profit_percent < self.sell_trigger_percent:
            raise ValueError("targetProfitPercent must be >= sellTriggerPercent")
        return self


class TrendFollowerConfig(StrategyConfig):
    fast_period: int = Field(3, ge=1)
    slow_period: int = Field(8, ge=2)
    trade_percent: float = Field(0.25, gt=0, le=1)
    max_position_percent: float = Field(0.50, gt=0, le=1)
    take_profit_percent: float = Field(25, gt=0)
    stop_loss_percent: float = Field(20, gt=0, le=100)
    min_cross_strength: float = Field(2, gt=0)
    allow_scale_in: bool = True
    scale_in_trigger: float = Field(10, gt=0)

    @model_validator(mode="after")
    def _periods(self):
        if self.fast_period >= self.slow_period:
            raise ValueError("fastPeriod must be smaller than slowPeriod")
        if self.trade_percent > self.max_position_percent:
            raise ValueError("tradePercent must not exceed maxPositionPercent")
        return self

    @property
    def window_capacity(self) -> int:
        return max(self.price_window_size, self.slow_period + 2)


class PumpHunterConfig(StrategyConfig):
    bonding_buy_dip_percent: float = Field(10, gt=0, lt=100)
    bonding_trade_percent: float = Field(0.10, gt=0, le=1)
    bonding_sell_pump_percent: float = Field(20, gt=0)
    swap_buy_dip_percent: float = Field(15, gt=0, lt=100)
    swap_trade_percent: float = Field(0.20, gt=0, le=1)
    swap_sell_pump_percent: float = Field(15, gt=0)
    stop_loss_percent: float = Field(30, gt=0, le=100)
    max_position_percent: float = Field(0.50, gt=0, le=1)
    migration_take_profit_factor: float = Field(0.7, gt=0, le=1)
    momentum_exit_percent: float = Field(30, gt=0)
    momentum_min_profit_percent: float = Field(5, ge=0)


class VolumeConfig(StrategyConfig):
    slippage: float = Field(0.25, gt=0, le=1)
    # cycle timing is random, price pushes must not cut it short
    wake_on_update: bool = False
    trade_percent_min: float = Field(0.05, gt=0, le=1)
    trade_percent_max: float = Field(0.15, gt=0, le=1)
    trade_amount_min: Optional[float] = Field(None, gt=0)
    trade_amount_max: Optional[float] = Field(None, gt=0)
    delay_min_ms: int = Field(5000, ge=0)
    delay_max_ms: int = Field(20000, ge=0)
    hold_min_ms: int = Field(2000, ge=0)
    hold_max_ms: int = Field(5000, ge=0)
    max_cycles_per_hour: int = Field(60, ge=1)

    @model_validator(mode="after")
    def _ranges(self):
        if self.trade_percent_min > self.trade_percent_max:
            raise ValueError("tradePercentMin must be <= tradePercentMax")
        if self.delay_min_ms > self.delay_max_ms:
            raise ValueError("delayMinMs must be <= delayMaxMs")
        if self.hold_min_ms > self.hold_max_ms:
            raise ValueError("holdMinMs must be <= holdMaxMs")
        if (self.trade_amount_min is None) != (self.trade_amount_max is None):
            raise ValueError("tradeAmountMin and tradeAmountMax must be set together")
        if self.trade_amount_min is not None and self.trade_amount_min > self.trade_amount_max:
            raise ValueError("tradeAmountMin must be <= tradeAmountMax")
        return self
