"""
models/position.py
------------------
Open position held by one engine, plus grid levels for the grid policy.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class PositionEntry:
    amount: float           # base currency spent
    price: float
    tag: Optional[int] = None

    @property
    def tokens(self) -> float:
        return self.amount / self.price


@dataclass
class Position:
    opened_at: float
    entries: List[PositionEntry] = field(default_factory=list)
    # cost basis and proceeds of chunks already sold off this position
    realized_cost: float = 0.0
    realized_value: float = 0.0

    @property
    def size(self) -> float:
        return sum(e.amount for e in self.entries)

    @property
    def tokens(self) -> float:
        return sum(e.tokens for e in self.entries)

    @property
    def avg_price(self) -> float:
        """Volume-weighted cost basis across all fills."""
        size = self.size
        if size <= 0:
            return 0.0
        if len(self.entries) == 1:
            return self.entries[0].price
        return size / self.tokens

    @property
    def is_empty(self) -> bool:
        return self.size <= 1e-12

    def add(self, amount: float, price: float, tag: Optional[int] = None) -> None:
        self.entries.append(PositionEntry(amount=amount, price=price, tag=tag))

    def entry_for(self, tag: int) -> Optional[PositionEntry]:
        return next((e for e in self.entries if e.tag == tag), None)

    def remove_tag(self, tag: int) -> Optional[PositionEntry]:
        entry = self.entry_for(tag)
        if entry is not None:
            self.entries.remove(entry)
        return entry

    def reduce(self, portion: float) -> float:
        """Scale every entry down by ``portion``; return base amount removed."""
        portion = min(max(portion, 0.0), 1.0)
        removed = self.size * portion
        self.entries = [
            PositionEntry(amount=e.amount * (1 - portion), price=e.price, tag=e.tag)
            for e in self.entries
        ]
        return removed

    def profit_percent(self, price: float) -> float:
        avg = self.avg_price
        return (price - avg) / avg * 100 if avg > 0 else 0.0

    def realize(self, cost: float, value: float) -> None:
        self.realized_cost += cost
        self.realized_value += value

    def realized_profit_percent(self) -> float:
        """Profit of everything sold so far, weighted by the cost of each chunk."""
        if self.realized_cost <= 0:
            return 0.0
        return (self.realized_value - self.realized_cost) / self.realized_cost * 100

    def as_dict(self) -> dict:
        return {
            "size": self.size,
            "avg_price": self.avg_price,
            "opened_at": self.opened_at,
            "entries": len(self.entries),
        }


@dataclass
class GridLevel:
    index: int
    trigger_price: float
    drop_percent: float
    filled: bool = False
    fill_price: Optional[float] = None
    fill_amount: Optional[float] = None

    def fill(self, price: float, amount: float) -> None:
        self.filled = True
        self.fill_price = price
        self.fill_amount = amount

    def rearm(self) -> None:
        self.filled = False
        self.fill_price = None
        self.fill_amount = None
