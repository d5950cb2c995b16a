# ------------------------------------------------------------------
#  tests/conftest.py – shared fakes: virtual clock, scripted price feed,
#  in-memory venue/gateway and a recording event sink.
# ------------------------------------------------------------------
import asyncio
from typing import Any, List, Optional, Tuple

import pytest

from pumpbot.models.instrument import Instrument
from pumpbot.models.price import PriceSample, PriceSource, VenueStatus, VenueTag
from pumpbot.models.trade_event import TradeEvent
from pumpbot.modules.events import EventSink
from pumpbot.modules.router import ExecutionRouter
from pumpbot.modules.strategy import create_engine
from pumpbot.modules.venue import LAMPORTS_PER_SOL, ChainGateway, Venue
from pumpbot.utils.clock import Clock

MINT = "7GCihgDB8fe6KNjn2MYtkzZcRjQy3t9GHdC8uHYmW2hr"
OTHER_MINT = "So11111111111111111111111111111111111111112"


class VirtualClock(Clock):
    """Time only moves when somebody sleeps or waits."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.t = start

    def now(self) -> float:
        return self.t

    def advance(self, seconds: float) -> None:
        self.t += seconds

    async def sleep(self, seconds: float) -> None:
        self.t += max(seconds, 0)
        await asyncio.sleep(0)

    async def wait(self, event: asyncio.Event, timeout: float) -> bool:
        await asyncio.sleep(0)
        if event.is_set():
            event.clear()
            return True
        self.t += max(timeout, 0)
        return False


class ScriptedPriceFeed:
    """Serves whatever price the test set last; None means unavailable."""

    def __init__(self, clock: Clock, price: Optional[float] = None) -> None:
        self.clock = clock
        self.price = price
        self.venue = VenueTag.BONDING_CURVE
        self.started: List[Instrument] = []
        self.stopped: List[Instrument] = []
        self.listeners: List[Any] = []

    def set(self, price: Optional[float]) -> None:
        self.price = price

    async def get_sample(self, instrument: Instrument) -> Optional[PriceSample]:
        if self.price is None:
            return None
        return PriceSample(price=self.price, timestamp=self.clock.now(), source=PriceSource.RPC, venue=self.venue)

    async def get_price(self, instrument: Instrument) -> Optional[float]:
        return self.price

    async def start_tracking(self, instrument: Instrument, listener=None):
        self.started.append(instrument)
        if listener is not None:
            self.listeners.append(listener)
        return self

    async def stop_tracking(self, instrument: Instrument, listener=None) -> bool:
        self.stopped.append(instrument)
        if listener in self.listeners:
            self.listeners.remove(listener)
        return True

    async def close(self) -> None:
        pass


class FakeGateway(ChainGateway):
    def __init__(self, balance: float = 10.0, venue: VenueTag = VenueTag.BONDING_CURVE) -> None:
        self.balance = balance
        self.venue = venue
        self.balance_error: Optional[Exception] = None
        self.status_calls = 0

    async def get_balance(self, wallet: Any) -> int:
        if self.balance_error is not None:
            raise self.balance_error
        return int(self.balance * LAMPORTS_PER_SOL)

    async def get_venue_status(self, instrument: Instrument) -> VenueStatus:
        self.status_calls += 1
        return VenueStatus.for_venue(self.venue)


class FakeVenue(Venue):
    def __init__(self, tag: VenueTag, price: Optional[float] = None) -> None:
        self.tag = tag
        self.price = price
        self.buys: List[Tuple[str, float]] = []
        self.sells: List[Tuple[str, Any]] = []
        self.fail_with: Optional[Exception] = None
        self.price_error: Optional[Exception] = None
        self._n = 0

    def _sig(self) -> str:
        self._n += 1
        return f"{self.tag.value}-sig-{self._n}"

    async def buy(self, wallet, instrument, amount, slippage) -> str:
        if self.fail_with is not None:
            raise self.fail_with
        self.buys.append((instrument.mint, amount))
        return self._sig()

    async def sell(self, wallet, instrument, amount, slippage) -> str:
        if self.fail_with is not None:
            raise self.fail_with
        self.sells.append((instrument.mint, amount))
        return self._sig()

    async def get_price(self, instrument) -> Optional[float]:
        if self.price_error is not None:
            raise self.price_error
        return self.price


class RecordingSink(EventSink):
    def __init__(self) -> None:
        self.lines: List[Tuple[int, str]] = []
        self.trades: List[TradeEvent] = []

    def log(self, level: int, message: str) -> None:
        self.lines.append((level, message))

    def trade(self, event: TradeEvent) -> None:
        self.trades.append(event)

    def messages(self, level: Optional[int] = None) -> List[str]:
        return [m for lv, m in self.lines if level is None or lv == level]


# ------------------------- Fixtures ------------------------- #

@pytest.fixture
def instrument():
    return Instrument.parse(MINT)


@pytest.fixture
def clock():
    return VirtualClock()


@pytest.fixture
def feed(clock):
    return ScriptedPriceFeed(clock)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def venues():
    return {tag: FakeVenue(tag) for tag in VenueTag}


@pytest.fixture
def router(gateway, venues, clock):
    return ExecutionRouter(gateway, venues, "test-wallet", clock=clock)


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def make_engine(feed, router, sink, clock, instrument):
    def _make(strategy_id: str, options=None, **kwargs):
        return create_engine(strategy_id, instrument, feed, router, options, sink=sink, clock=clock, **kwargs)

    return _make


async def feed_prices(engine, feed, prices):
    """Tick ``engine`` once per price; return the actions taken."""
    actions = []
    for price in prices:
        feed.set(price)
        actions.append(await engine.tick())
    return actions


@pytest.fixture
def tick_prices(feed):
    async def _run(engine, prices):
        return await feed_prices(engine, feed, prices)

    return _run


@pytest.fixture
def other_instrument():
    return Instrument.parse(OTHER_MINT)
