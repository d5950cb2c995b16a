"""
core/orchestrator.py
--------------------
``BotManager`` owns the lifecycle of every running strategy engine and the
shared resources they use (price feed with its tracker registry, router,
event bus). Its lifetime is the lifetime of those shared resources:
``shutdown()`` stops every engine and then releases all trackers.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

from pumpbot.models.instrument import Instrument
from pumpbot.modules.engine import StrategyEngine
from pumpbot.modules.events import BusEventSink
from pumpbot.modules.stats import Stats
from pumpbot.modules.strategy import create_engine, resolve_strategy
from pumpbot.utils.clock import Clock, default_clock
from pumpbot.utils.event_bus import EventBus


def bot_id_for(strategy_id: str, instrument: Instrument) -> str:
    return f"{strategy_id}:{instrument.mint}"


class BotManager:
    def __init__(
        self,
        price_feed: Any,
        router: Any,
        *,
        bus: Optional[EventBus] = None,
        persistence: Any = None,
        clock: Optional[Clock] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.price_feed = price_feed
        self.router = router
        self.bus = bus or EventBus()
        self.persistence = persistence
        self.clock = clock or default_clock()
        self.logger = logger or logging.getLogger(self.__class__.__name__)
        self.engines: Dict[str, StrategyEngine] = {}

    # ------------------------------------------------------------------ #
    async def start_bot(
        self,
        strategy_id: str,
        instrument: Any,
        options: Optional[Mapping[str, Any]] = None,
        **engine_kwargs: Any,
    ) -> StrategyEngine:
        key = resolve_strategy(strategy_id)
        inst = Instrument.parse(instrument)
        bot_id = bot_id_for(key, inst)

        existing = self.engines.get(bot_id)
        if existing is not None and existing.is_running:
            self.logger.info("Bot %s already running", bot_id)
            return existing

        running = [bid for bid, e in self.engines.items() if e.is_running]
        if running:
            self.logger.warning(
                "Starting %s next to %d running bot(s) on the same wallet: balance is not "
                "reserved across strategies, concurrent buys can over-commit funds",
                bot_id,
                len(running),
            )

        engine_kwargs.setdefault("clock", self.clock)
        engine_kwargs.setdefault("sink", BusEventSink(self.bus, self.logger, prefix=f"[{key}] {inst.short} "))
        engine = create_engine(key, inst, self.price_feed, self.router, options, **engine_kwargs)
        await engine.start()
        self.engines[bot_id] = engine
        self.logger.info("✅ Bot %s started", bot_id)
        return engine

    async def stop_bot(self, bot_id: str) -> Stats:
        engine = self.engines.pop(bot_id, None)
        if engine is None:
            raise KeyError(f"no bot {bot_id!r}")
        stats = await engine.stop()
        self._save_stats(bot_id, stats)
        self.logger.info("Bot %s stopped", bot_id)
        return stats

    def status(self) -> Dict[str, Dict[str, Any]]:
        return {bot_id: engine.get_status() for bot_id, engine in self.engines.items()}

    async def shutdown(self) -> Dict[str, Stats]:
        results: Dict[str, Stats] = {}
        for bot_id in list(self.engines):
            try:
                results[bot_id] = await self.stop_bot(bot_id)
            except Exception:
                self.logger.exception("Stopping bot %s failed", bot_id)
        await self.bus.drain()
        await self.price_feed.close()
        await self.bus.close()
        self.logger.info("BotManager shut down (%d bots)", len(results))
        return results

    def _save_stats(self, bot_id: str, stats: Stats) -> None:
        if self.persistence is None:
            return
        try:
            self.persistence.upsert_stats(bot_id, stats, self.clock.now())
        except Exception as exc:
            self.logger.warning("Saving stats for %s failed: %s", bot_id, exc)
