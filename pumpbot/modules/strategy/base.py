"""
strategy/base.py
----------------
Common interface for all decision policies.

A policy receives a ``TickContext`` (latest price, rolling window, open
position, timing) and returns at most one action per tick. It never
talks to the venue itself; sizing, submission and bookkeeping are done by
the engine.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, Type, Union

from pumpbot.models.config import StrategyConfig
from pumpbot.models.instrument import Instrument
from pumpbot.models.position import Position
from pumpbot.models.price import PriceSample, VenueStatus
from pumpbot.modules.rolling_window import RollingWindow
from pumpbot.modules.stats import StatsRecorder
from pumpbot.utils.clock import Clock


# ---------------------------------------------------------------------------- #
# actions
# ---------------------------------------------------------------------------- #
@dataclass(frozen=True)
class Hold:
    reason: str = ""


@dataclass(frozen=True)
class Buy:
    """Open or add to the position.

    ``fraction`` sizes against available balance, ``amount`` is a fixed size
    in base currency; with both the smaller wins. ``max_position_fraction``
    caps the whole holding. ``tag`` labels the entry (grid level index).
    """

    reason: str
    fraction: Optional[float] = None
    amount: Optional[float] = None
    max_position_fraction: Optional[float] = None
    tag: Optional[int] = None


@dataclass(frozen=True)
class Sell:
    """Close ``portion`` of the position, or the entry labelled ``tag``.

    ``halt`` stops the engine after this sell is attempted.
    """

    reason: str
    portion: float = 1.0
    tag: Optional[int] = None
    halt: bool = False


Action = Union[Hold, Buy, Sell]
HOLD = Hold()


# ---------------------------------------------------------------------------- #
# contexts
# ---------------------------------------------------------------------------- #
@dataclass
class TickContext:
    instrument: Instrument
    price: float
    sample: PriceSample
    window: RollingWindow
    position: Optional[Position]
    now: float
    last_action_at: Optional[float]
    stats: StatsRecorder
    venue_status: Optional[VenueStatus] = None
    min_trade: float = 0.0

    @property
    def profit_percent(self) -> Optional[float]:
        if self.position is None:
            return None
        return self.position.profit_percent(self.price)

    @property
    def since_last_action(self) -> float:
        if self.last_action_at is None:
            return math.inf
        return self.now - self.last_action_at


@dataclass
class SetupContext:
    instrument: Instrument
    get_price: Callable[[], Awaitable[Optional[float]]]
    clock: Clock
    log: Callable[[int, str], None]
    extra: Dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------- #
# policy
# ---------------------------------------------------------------------------- #
class DecisionPolicy(ABC):
    config_class: Type[StrategyConfig] = StrategyConfig
    #: re-read venue status every tick
    needs_venue_status: bool = False

    def __init__(self, config: StrategyConfig) -> None:
        self.config = config

    @property
    def min_samples(self) -> int:
        return 1

    @property
    def window_capacity(self) -> int:
        return self.config.price_window_size

    async def setup(self, ctx: SetupContext) -> None:
        """One-time work before the first tick."""

    @abstractmethod
    def evaluate(self, ctx: TickContext) -> Action:
        raise NotImplementedError

    def on_executed(self, action: Action, ctx: TickContext, amount: float) -> None:
        """Called after a buy or sell went through."""

    def exit_action(self, position: Optional[Position]) -> Optional[Sell]:
        """Forced exit used when the engine stops."""
        if position is None or position.is_empty:
            return None
        return Sell("shutdown")

    def next_delay_ms(self) -> Optional[int]:
        """Override the tick interval for the next sleep."""
        return None

    def status(self) -> Dict[str, Any]:
        return {}


# percent thresholds are compared with a small tolerance for float noise
EPSILON = 1e-9


def reached(value: float, threshold: float) -> bool:
    return value >= threshold - EPSILON
