"""
stats.py
--------
Per-engine trade statistics. Counters only ever grow; ``snapshot()`` hands
out an immutable copy for status queries.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class Stats:
    buys: int = 0
    sells: int = 0
    wins: int = 0
    losses: int = 0
    failed: int = 0
    total_profit_percent: float = 0.0
    biggest_win_percent: float = 0.0
    biggest_loss_percent: float = 0.0
    volume_bought: float = 0.0
    volume_sold: float = 0.0
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def volume(self) -> float:
        return self.volume_bought + self.volume_sold

    @property
    def win_rate(self) -> Optional[float]:
        closed = self.wins + self.losses
        return self.wins / closed * 100 if closed else None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["volume"] = self.volume
        data["win_rate"] = self.win_rate
        return data


class StatsRecorder:
    def __init__(self) -> None:
        self._stats = Stats()
        self._extra: Dict[str, Any] = {}

    def record_buy(self, amount: float) -> None:
        s = self._stats
        self._stats = replace(s, buys=s.buys + 1, volume_bought=s.volume_bought + amount)

    def record_sell(self, amount: float, profit_percent: Optional[float] = None) -> None:
        """Count a sell; ``profit_percent`` is given only when it closes a trade."""
        s = self._stats
        updates: Dict[str, Any] = {
            "sells": s.sells + 1,
            "volume_sold": s.volume_sold + amount,
        }
        if profit_percent is not None:
            updates["total_profit_percent"] = s.total_profit_percent + profit_percent
            if profit_percent > 0:
                updates["wins"] = s.wins + 1
                updates["biggest_win_percent"] = max(s.biggest_win_percent, profit_percent)
            elif profit_percent < 0:
                updates["losses"] = s.losses + 1
                updates["biggest_loss_percent"] = min(s.biggest_loss_percent, profit_percent)
        self._stats = replace(s, **updates)

    def record_failure(self) -> None:
        self._stats = replace(self._stats, failed=self._stats.failed + 1)

    def increment(self, name: str, by: float = 1) -> None:
        """Strategy-specific counters (levels hit, trend changes, cycles, ...)."""
        self._extra[name] = self._extra.get(name, 0) + by

    def snapshot(self) -> Stats:
        return replace(self._stats, extra=dict(self._extra))
