"""
persistence/sqlite.py
---------------------
Simple SQLite wrapper for executed trades and per-bot stats snapshots.
"""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Any, Dict, List, Optional

from pumpbot.models.trade_event import TradeEvent
from pumpbot.modules.events import TRADE_TOPIC
from pumpbot.modules.stats import Stats
from pumpbot.utils.event_bus import EventBus

SCHEMA = """
PRAGMA journal_mode=WAL;

CREATE TABLE IF NOT EXISTS trades (
    id             INTEGER PRIMARY KEY,
    ts             REAL,
    strategy       TEXT,
    instrument     TEXT,
    kind           TEXT,
    amount         REAL,
    price          REAL,
    profit_percent REAL,
    reason         TEXT,
    signature      TEXT,
    venue          TEXT
);

CREATE TABLE IF NOT EXISTS bot_stats (
    bot_id     TEXT PRIMARY KEY,
    updated_at REAL,
    payload    TEXT          -- raw JSON blob
);
"""


class SQLitePersistence:
    def __init__(self, db_path: str = "data/pumpbot.db"):
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.executescript(SCHEMA)
        self.conn.commit()

    def attach(self, bus: EventBus) -> None:
        bus.subscribe(TRADE_TOPIC, self.insert_trade)

    # ---------------------------- INSERTS -------------------------------- #
    def insert_trade(self, event: TradeEvent) -> None:
        self.conn.execute(
            """
            INSERT INTO trades (ts, strategy, instrument, kind, amount, price,
                                profit_percent, reason, signature, venue)
            VALUES (:ts, :strategy, :instrument, :kind, :amount, :price,
                    :profit, :reason, :signature, :venue)
            """,
            {
                "ts": event.timestamp,
                "strategy": event.strategy,
                "instrument": event.instrument,
                "kind": event.kind,
                "amount": event.amount,
                "price": event.price,
                "profit": event.profit_percent,
                "reason": event.reason,
                "signature": event.signature,
                "venue": event.receipt.venue.value,
            },
        )
        self.conn.commit()

    def upsert_stats(self, bot_id: str, stats: Stats, updated_at: float) -> None:
        self.conn.execute(
            """
            INSERT INTO bot_stats (bot_id, updated_at, payload)
            VALUES (:bot_id, :updated_at, :payload)
            ON CONFLICT(bot_id) DO UPDATE SET
              updated_at = excluded.updated_at,
              payload = excluded.payload
            """,
            {"bot_id": bot_id, "updated_at": updated_at, "payload": json.dumps(stats.to_dict())},
        )
        self.conn.commit()

    # ---------------------------- QUERIES -------------------------------- #
    def recent_trades(self, instrument: Optional[str] = None, limit: int = 50) -> List[Dict[str, Any]]:
        if instrument is None:
            rows = self.conn.execute("SELECT * FROM trades ORDER BY id DESC LIMIT ?", (limit,))
        else:
            rows = self.conn.execute(
                "SELECT * FROM trades WHERE instrument = ? ORDER BY id DESC LIMIT ?", (instrument, limit)
            )
        return [dict(r) for r in rows.fetchall()]

    def load_stats(self, bot_id: str) -> Optional[Dict[str, Any]]:
        row = self.conn.execute("SELECT payload FROM bot_stats WHERE bot_id = ?", (bot_id,)).fetchone()
        return json.loads(row["payload"]) if row else None

    def close(self) -> None:
        self.conn.close()
