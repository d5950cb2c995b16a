"""
events.py
---------
Output side of an engine: free-form log lines and one structured
``TradeEvent`` per executed buy or sell.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional

from pumpbot.models.trade_event import TradeEvent
from pumpbot.utils.event_bus import EventBus

TRADE_TOPIC = "trade"


class EventSink(ABC):
    @abstractmethod
    def log(self, level: int, message: str) -> None:
        ...

    @abstractmethod
    def trade(self, event: TradeEvent) -> None:
        ...


class LoggingEventSink(EventSink):
    """Default sink: everything goes to a logger."""

    def __init__(self, logger: Optional[logging.Logger] = None, prefix: str = "") -> None:
        self.logger = logger or logging.getLogger("pumpbot.engine")
        self.prefix = prefix

    def log(self, level: int, message: str) -> None:
        self.logger.log(level, "%s%s", self.prefix, message)

    def trade(self, event: TradeEvent) -> None:
        profit = f" ({event.profit_percent:+.2f}%)" if event.profit_percent is not None else ""
        self.logger.info(
            "%s%s %.4f @ %.10f – %s%s [%s]",
            self.prefix,
            event.kind.upper(),
            event.amount,
            event.price,
            event.reason,
            profit,
            event.signature,
        )


class BusEventSink(LoggingEventSink):
    """Logs like the default sink and publishes trades on the bus."""

    def __init__(self, bus: EventBus, logger: Optional[logging.Logger] = None, prefix: str = "") -> None:
        super().__init__(logger, prefix)
        self.bus = bus

    def trade(self, event: TradeEvent) -> None:
        super().trade(event)
        self.bus.publish(TRADE_TOPIC, event)
