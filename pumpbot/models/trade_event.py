# --------------------------------------------------------------------
# models/trade_event.py
# Receipts returned by the router and the TradeEvent notification emitted
# by an engine once per executed buy or sell.
# --------------------------------------------------------------------
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Literal, Optional

from pumpbot.models.price import VenueTag


class _All:
    """Sentinel for 'sell the whole holding'."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ALL"


ALL = _All()


@dataclass(frozen=True)
class TradeReceipt:
    signature: str
    side: Literal["buy", "sell"]
    instrument: str
    venue: VenueTag
    amount: Any            # base amount for buys, token amount or ALL for sells
    submitted_at: float


@dataclass(frozen=True)
class TradeEvent:
    kind: Literal["buy", "sell"]
    instrument: str
    strategy: str
    amount: float          # base currency
    price: float
    reason: str
    receipt: TradeReceipt
    timestamp: float
    profit_percent: Optional[float] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def signature(self) -> str:
        return self.receipt.signature

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["receipt"]["venue"] = self.receipt.venue.value
        data["receipt"]["amount"] = repr(self.receipt.amount) if self.receipt.amount is ALL else self.receipt.amount
        return data
