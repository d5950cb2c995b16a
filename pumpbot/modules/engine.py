"""
engine.py
---------
Generic control loop shared by every strategy.

One ``StrategyEngine`` drives one decision policy against one instrument:

    fetch price → update window → (wait for enough data) → evaluate policy
    → execute at most one action → sleep until the next tick or a push update

The engine exclusively owns its position, statistics and rolling window.
Errors inside a tick are logged with context and the tick is skipped; only
``stop()`` or a policy-requested halt ends the loop.
"""
from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Dict, Optional

from pumpbot.exceptions import DataUnavailableError, ExecutionError
from pumpbot.models.instrument import Instrument
from pumpbot.models.position import Position
from pumpbot.models.price import PriceUpdate
from pumpbot.models.trade_event import ALL, TradeEvent, TradeReceipt
from pumpbot.modules.events import EventSink, LoggingEventSink
from pumpbot.modules.rolling_window import RollingWindow
from pumpbot.modules.router import ExecutionRouter
from pumpbot.modules.stats import Stats, StatsRecorder
from pumpbot.modules.strategy.base import (
    Action,
    Buy,
    DecisionPolicy,
    Sell,
    SetupContext,
    TickContext,
)
from pumpbot.utils.clock import Clock, default_clock


class EngineState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


class StrategyEngine:
    def __init__(
        self,
        instrument: Any,
        policy: DecisionPolicy,
        price_feed: Any,
        router: ExecutionRouter,
        *,
        strategy_id: str = "strategy",
        sink: Optional[EventSink] = None,
        clock: Optional[Clock] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.instrument = Instrument.parse(instrument)
        self.policy = policy
        self.config = policy.config
        self.price_feed = price_feed
        self.router = router
        self.strategy_id = strategy_id
        self.clock = clock or default_clock()
        self.sink = sink or LoggingEventSink(
            logger or logging.getLogger(__name__),
            prefix=f"[{strategy_id}] {self.instrument.short} ",
        )

        self.state = EngineState.IDLE
        self.window = RollingWindow(policy.window_capacity)
        self.position: Optional[Position] = None
        self.stats = StatsRecorder()
        self.ticks = 0
        self.last_price: Optional[float] = None
        self.last_action_at: Optional[float] = None
        self.halt_reason: Optional[str] = None

        self._wake = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self._tracking = False
        self._finalized = False

    # ------------------------------------------------------------------ #
    # lifecycle
    # ------------------------------------------------------------------ #
    @property
    def is_running(self) -> bool:
        return self.state is EngineState.RUNNING

    async def start(self, *, run_loop: bool = True) -> None:
        if self.state is not EngineState.IDLE:
            self.sink.log(logging.WARNING, f"start() ignored in state {self.state.value}")
            return
        self.state = EngineState.RUNNING

        try:
            if self.config.use_tracker:
                await self.price_feed.start_tracking(self.instrument, self._on_price_update)
                self._tracking = True
            await self.policy.setup(
                SetupContext(
                    instrument=self.instrument,
                    get_price=lambda: self.price_feed.get_price(self.instrument),
                    clock=self.clock,
                    log=self.sink.log,
                )
            )
        except Exception:
            await self._release_tracker()
            self.state = EngineState.STOPPED
            self._finalized = True
            raise

        self.sink.log(logging.INFO, f"started ({type(self.policy).__name__})")
        if run_loop:
            self._task = asyncio.get_running_loop().create_task(
                self._run(), name=f"engine:{self.strategy_id}:{self.instrument.mint}"
            )

    async def stop(self) -> Stats:
        """Stop the loop, close any open position and return final stats."""
        if self.state is EngineState.IDLE:
            self.state = EngineState.STOPPED
            return self.stats.snapshot()

        if self.state is EngineState.RUNNING:
            self.state = EngineState.STOPPING
        self._wake.set()
        if self._task is not None:
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        await self._finalize()
        return self.stats.snapshot()

    async def _finalize(self) -> None:
        if self._finalized:
            return
        self._finalized = True
        self.state = EngineState.STOPPING

        exit_action = self.policy.exit_action(self.position)
        if exit_action is not None:
            self.sink.log(logging.INFO, f"closing open position ({exit_action.reason})")
            try:
                await self._execute_sell(exit_action, self._context_for_exit())
            except Exception as exc:
                self.sink.log(logging.ERROR, f"final liquidation failed: {exc}")

        await self._release_tracker()
        self.state = EngineState.STOPPED
        snapshot = self.stats.snapshot()
        self.sink.log(
            logging.INFO,
            f"stopped after {self.ticks} ticks – buys={snapshot.buys} sells={snapshot.sells} "
            f"profit={snapshot.total_profit_percent:+.2f}%",
        )

    async def _release_tracker(self) -> None:
        if not self._tracking:
            return
        self._tracking = False
        try:
            await self.price_feed.stop_tracking(self.instrument, self._on_price_update)
        except Exception as exc:
            self.sink.log(logging.WARNING, f"tracker release failed: {exc}")

    def _on_price_update(self, update: PriceUpdate) -> None:
        if self.config.wake_on_update and self.is_running:
            self._wake.set()

    # ------------------------------------------------------------------ #
    # loop
    # ------------------------------------------------------------------ #
    async def _run(self) -> None:
        while self.state is EngineState.RUNNING:
            await self.tick()
            if self.state is not EngineState.RUNNING:
                break
            delay_ms = self.policy.next_delay_ms()
            timeout = delay_ms / 1000 if delay_ms is not None else self.config.check_interval
            await self.clock.wait(self._wake, timeout)
        if self.halt_reason is not None:
            await self._finalize()

    async def tick(self) -> Optional[Action]:
        """Run one iteration; return the action taken, if any."""
        self.ticks += 1
        action: Optional[Action] = None
        try:
            sample = await self.price_feed.get_sample(self.instrument)
            if sample is None:
                self.sink.log(logging.DEBUG, f"tick {self.ticks}: price unavailable, skipping")
                return None
            self.window.push(sample)
            self.last_price = sample.price
            if len(self.window) < self.policy.min_samples:
                return None

            venue_status = None
            if self.policy.needs_venue_status:
                venue_status = await self.router.venue_status(self.instrument)

            ctx = TickContext(
                instrument=self.instrument,
                price=sample.price,
                sample=sample,
                window=self.window,
                position=self.position,
                now=self.clock.now(),
                last_action_at=self.last_action_at,
                stats=self.stats,
                venue_status=venue_status,
                min_trade=self.router.min_trade,
            )
            action = self.policy.evaluate(ctx)
            if isinstance(action, Buy):
                await self._execute_buy(action, ctx)
            elif isinstance(action, Sell):
                await self._execute_sell(action, ctx)
                if action.halt:
                    self._halt(action.reason)
            return action
        except asyncio.CancelledError:
            raise
        except DataUnavailableError as exc:
            self.sink.log(logging.WARNING, f"tick {self.ticks}: {exc}, skipping")
        except Exception as exc:
            self.sink.log(
                logging.ERROR,
                f"tick {self.ticks} failed (action={action!r}): {exc.__class__.__name__}: {exc}",
            )
        return None

    def _halt(self, reason: str) -> None:
        self.halt_reason = reason
        if self.state is EngineState.RUNNING:
            self.state = EngineState.STOPPING
        self.sink.log(logging.WARNING, f"HALTED: {reason}")

    # ------------------------------------------------------------------ #
    # execution
    # ------------------------------------------------------------------ #
    async def _execute_buy(self, action: Buy, ctx: TickContext) -> bool:
        held = self.position.size if self.position is not None else 0.0
        amount = await self.router.plan_buy(
            fraction=action.fraction,
            amount=action.amount,
            max_position_fraction=action.max_position_fraction,
            held=held,
        )
        if amount is None:
            return False

        try:
            receipt = await self.router.buy(self.instrument, amount, self.config.slippage)
        except ExecutionError as exc:
            self.stats.record_failure()
            self.sink.log(logging.WARNING, f"tick {self.ticks}: buy ({action.reason}) failed: {exc.reason}")
            return False
        if receipt is None:
            return False

        if self.position is None:
            self.position = Position(opened_at=ctx.now)
        self.position.add(amount, ctx.price, action.tag)
        self.stats.record_buy(amount)
        self.last_action_at = ctx.now
        self.policy.on_executed(action, ctx, amount)
        self._emit("buy", amount, ctx.price, action.reason, receipt, None)
        return True

    async def _execute_sell(self, action: Sell, ctx: TickContext) -> bool:
        position = self.position
        if position is None or position.is_empty:
            return False

        entry = position.entry_for(action.tag) if action.tag is not None else None
        if action.tag is not None and entry is None:
            self.sink.log(logging.WARNING, f"no entry tagged {action.tag} to sell")
            return False

        if entry is not None:
            request: Any = entry.tokens
            tokens = entry.tokens
            profit = (ctx.price - entry.price) / entry.price * 100
        elif action.portion >= 1.0:
            request = ALL
            tokens = position.tokens
            profit = position.profit_percent(ctx.price)
        else:
            tokens = position.tokens * action.portion
            request = tokens
            profit = position.profit_percent(ctx.price)

        try:
            receipt = await self.router.sell(self.instrument, request, self.config.slippage)
        except ExecutionError as exc:
            self.stats.record_failure()
            self.sink.log(logging.WARNING, f"tick {self.ticks}: sell ({action.reason}) failed: {exc.reason}")
            return False
        if receipt is None:
            return False

        # a tagged entry is a trade of its own; untagged chunks are booked
        # as one trade when the position closes
        value = tokens * ctx.price
        closed_profit: Optional[float] = None
        if entry is not None:
            position.remove_tag(entry.tag)
            closed_profit = profit
        elif action.portion >= 1.0:
            position.realize(position.size, value)
            position.entries.clear()
            closed_profit = position.realized_profit_percent()
        else:
            position.realize(position.reduce(action.portion), value)
        if position.is_empty:
            self.position = None
            if closed_profit is None:
                closed_profit = position.realized_profit_percent()

        self.stats.record_sell(value, closed_profit)
        self.last_action_at = ctx.now
        self.policy.on_executed(action, ctx, value)
        self._emit("sell", value, ctx.price, action.reason, receipt, profit)
        return True

    def _context_for_exit(self) -> TickContext:
        price = self.last_price if self.last_price is not None else (
            self.position.avg_price if self.position is not None else 0.0
        )
        latest = self.window.latest
        return TickContext(
            instrument=self.instrument,
            price=price,
            sample=latest,
            window=self.window,
            position=self.position,
            now=self.clock.now(),
            last_action_at=self.last_action_at,
            stats=self.stats,
            min_trade=self.router.min_trade,
        )

    def _emit(
        self,
        kind: str,
        amount: float,
        price: float,
        reason: str,
        receipt: TradeReceipt,
        profit: Optional[float],
    ) -> None:
        event = TradeEvent(
            kind=kind,
            instrument=self.instrument.mint,
            strategy=self.strategy_id,
            amount=amount,
            price=price,
            reason=reason,
            receipt=receipt,
            timestamp=self.clock.now(),
            profit_percent=profit,
            extra={"tick": self.ticks, "venue": receipt.venue.value},
        )
        try:
            self.sink.trade(event)
        except Exception as exc:
            self.sink.log(logging.ERROR, f"trade sink failed: {exc}")

    # ------------------------------------------------------------------ #
    # status
    # ------------------------------------------------------------------ #
    def get_status(self) -> Dict[str, Any]:
        return {
            "strategy": self.strategy_id,
            "instrument": self.instrument.mint,
            "state": self.state.value,
            "running": self.is_running,
            "ticks": self.ticks,
            "last_price": self.last_price,
            "position": self.position.as_dict() if self.position is not None else None,
            "stats": self.stats.snapshot().to_dict(),
            "halt_reason": self.halt_reason,
            **self.policy.status(),
        }
