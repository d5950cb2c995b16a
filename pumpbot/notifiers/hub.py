"""
notifiers/hub.py
----------------
Fan-out layer that owns the back-end notifiers and turns every
``TradeEvent`` published on the bus into one human-readable message.
"""
from __future__ import annotations

import html
import logging
from typing import Dict, List, Optional

from pumpbot.models.trade_event import TradeEvent
from pumpbot.modules.events import TRADE_TOPIC
from pumpbot.notifiers.base import BaseNotifier
from pumpbot.notifiers.telegram import TelegramNotifier
from pumpbot.utils.event_bus import EventBus

logger = logging.getLogger(__name__)


class NotifierHub:
    """Collects active back-ends based on config and broadcasts messages."""

    def __init__(self, cfg: Dict, backends: Optional[List[BaseNotifier]] = None) -> None:
        self.backends: List[BaseNotifier] = list(backends or [])

        tg_cfg = cfg.get("TELEGRAM", {})
        if backends is None and tg_cfg.get("token") and tg_cfg.get("chat_id"):
            self.backends.append(TelegramNotifier(token=tg_cfg["token"], chat_id=tg_cfg["chat_id"]))

        if not self.backends:
            logger.info("NotifierHub: no back-ends configured")

    def attach(self, bus: EventBus) -> None:
        bus.subscribe(TRADE_TOPIC, self.send_trade_event)

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #
    async def send_trade_event(self, event: TradeEvent) -> None:
        await self.broadcast(self._format_trade(event))

    async def broadcast(self, text: str) -> None:
        for b in self.backends:
            try:
                await b.send(text)
            except Exception as exc:
                # one failing back-end must not stop the others
                logger.warning("[NotifierHub] back-end %s failed: %s", b.__class__.__name__, exc)

    async def close(self) -> None:
        for b in self.backends:
            close = getattr(b, "close", None)
            if close is not None:
                await close()

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #
    @staticmethod
    def _format_trade(e: TradeEvent) -> str:
        icon = "🟢" if e.kind == "buy" else "🔴"
        lines = [
            f"{icon} <b>{e.kind.upper()}</b> · {html.escape(e.strategy)}",
            f"Token <code>{e.instrument}</code>",
            f"Amount {e.amount:.4f} SOL @ {e.price:.10g}",
            f"Reason: {html.escape(e.reason)}",
        ]
        if e.profit_percent is not None:
            lines.append(f"P/L {e.profit_percent:+.2f}%")
        lines.append(f"Tx <code>{e.signature}</code>")
        return "\n".join(lines)
