"""
Strategy registry.

``create_engine`` is the single construction path: it resolves the strategy
id, validates the options into the variant's config model and only then
builds the engine, so a bad id or option never starts a loop.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Type

from pydantic import ValidationError

from pumpbot.exceptions import ConfigurationError
from pumpbot.models.config import StrategyConfig
from pumpbot.modules.strategy.accumulate import AccumulateDistributePolicy
from pumpbot.modules.strategy.base import DecisionPolicy
from pumpbot.modules.strategy.grid import GridPolicy
from pumpbot.modules.strategy.price_reactive import PriceReactivePolicy
from pumpbot.modules.strategy.pump_hunter import PumpHunterPolicy
from pumpbot.modules.strategy.trend_follower import TrendFollowerPolicy
from pumpbot.modules.strategy.volume import VolumePolicy


@dataclass(frozen=True)
class StrategySpec:
    policy: Type[DecisionPolicy]
    name: str
    description: str
    difficulty: str

    @property
    def config(self) -> Type[StrategyConfig]:
        return self.policy.config_class


STRATEGIES: Dict[str, StrategySpec] = {
    "price-reactive": StrategySpec(
        PriceReactivePolicy,
        "Price Reactive",
        "Buys dips from the recent high, sells pumps, with stop-loss and momentum exits",
        "beginner",
    ),
    "grid": StrategySpec(
        GridPolicy,
        "Grid Trading",
        "Staged buys at fixed steps below a base price, each level sold at its own target",
        "intermediate",
    ),
    "accumulate-distribute": StrategySpec(
        AccumulateDistributePolicy,
        "Accumulate / Distribute",
        "Accumulates small buys on a timer, distributes in chunks once in profit",
        "intermediate",
    ),
    "trend-follower": StrategySpec(
        TrendFollowerPolicy,
        "Trend Follower",
        "Moving-average crossover with hysteresis and a single scale-in",
        "intermediate",
    ),
    "pump-hunter": StrategySpec(
        PumpHunterPolicy,
        "Pump Hunter",
        "Venue-aware dip/pump trading that tightens take-profit after migration",
        "advanced",
    ),
    "volume": StrategySpec(
        VolumePolicy,
        "Volume Bot",
        "Randomised buy/sell cycles that generate trading volume",
        "beginner",
    ),
}

ALIASES = {"spread-mm": "accumulate-distribute"}


def resolve_strategy(strategy_id: str) -> str:
    key = ALIASES.get(strategy_id, strategy_id)
    if key not in STRATEGIES:
        raise ConfigurationError(
            f"unknown strategy {strategy_id!r}; available: {', '.join(sorted(STRATEGIES))}"
        )
    return key


def build_config(strategy_id: str, options: Optional[Mapping[str, Any]] = None) -> StrategyConfig:
    entry = STRATEGIES[resolve_strategy(strategy_id)]
    try:
        return entry.config.model_validate(dict(options or {}))
    except ValidationError as exc:
        raise ConfigurationError(f"invalid options for {strategy_id}: {exc}") from exc


def create_policy(strategy_id: str, options: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> DecisionPolicy:
    entry = STRATEGIES[resolve_strategy(strategy_id)]
    return entry.policy(build_config(strategy_id, options), **kwargs)


def create_engine(
    strategy_id: str,
    instrument: Any,
    price_feed: Any,
    router: Any,
    options: Optional[Mapping[str, Any]] = None,
    **engine_kwargs: Any,
):
    from pumpbot.modules.engine import StrategyEngine

    key = resolve_strategy(strategy_id)
    policy = create_policy(key, options)
    return StrategyEngine(instrument, policy, price_feed, router, strategy_id=key, **engine_kwargs)


def get_strategy_info() -> List[Dict[str, Any]]:
    return [
        {
            "id": key,
            "name": entry.name,
            "description": entry.description,
            "difficulty": entry.difficulty,
            "defaults": entry.config().model_dump(by_alias=True),
        }
        for key, entry in STRATEGIES.items()
    ]


__all__ = [
    "STRATEGIES",
    "ALIASES",
    "StrategySpec",
    "build_config",
    "create_engine",
    "create_policy",
    "get_strategy_info",
    "resolve_strategy",
]
