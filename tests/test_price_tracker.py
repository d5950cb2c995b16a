import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from pumpbot.models.price import PriceSample, PriceSource, PriceUpdate, VenueTag
from pumpbot.modules.price_cache import PriceCache
from pumpbot.modules.price_tracker import PriceTracker, TrackerRegistry, _default_parse
from pumpbot.utils.clock import Clock


def rpc_sample(price, venue=VenueTag.BONDING_CURVE):
    return PriceSample(price=price, timestamp=0.0, source=PriceSource.RPC, venue=venue)


@pytest.fixture
def real_clock():
    return Clock()


@pytest.fixture
def cache(real_clock):
    return PriceCache(clock=real_clock)


@pytest.mark.asyncio
async def test_start_is_idempotent_and_ref_counted(cache, real_clock, instrument):
    fetcher = AsyncMock(return_value=rpc_sample(1.0))
    registry = TrackerRegistry(fetcher, cache, poll_interval=60, clock=real_clock)

    first = await registry.start(instrument)
    second = await registry.start(instrument)

    assert first is second
    assert len(registry) == 1
    assert fetcher.await_count == 1  # one initial fetch, one poller
    assert first.current_price == 1.0

    assert await registry.stop(instrument) is False
    assert instrument in registry
    assert await registry.stop(instrument) is True
    assert instrument not in registry
    assert first.is_tracking is False
    await registry.shutdown()


@pytest.mark.asyncio
async def test_shutdown_stops_every_tracker(cache, real_clock, instrument, other_instrument):
    fetcher = AsyncMock(return_value=rpc_sample(1.0))
    registry = TrackerRegistry(fetcher, cache, poll_interval=60, clock=real_clock)
    a = await registry.start(instrument)
    b = await registry.start(other_instrument)

    await registry.shutdown()
    assert len(registry) == 0
    assert not a.is_tracking and not b.is_tracking


@pytest.mark.asyncio
async def test_updates_below_noise_threshold_are_ignored(cache, real_clock, instrument):
    tracker = PriceTracker(instrument, AsyncMock(), cache=cache, clock=real_clock)

    assert tracker._update(1.0, "stream") is True
    assert tracker._update(1.00005, "stream") is False   # 0.005%
    assert tracker._update(1.1, "stream") is True

    assert [s.price for s in tracker.history] == [1.0, 1.1]
    entry = cache.peek(instrument)
    assert entry.price == 1.1
    assert entry.source is PriceSource.TRACKER


@pytest.mark.asyncio
async def test_listeners_are_dispatched_through_the_bus(cache, real_clock, instrument):
    tracker = PriceTracker(instrument, AsyncMock(), cache=cache, clock=real_clock)
    listener = MagicMock()
    tracker.add_listener(listener)

    tracker._update(2.0, "stream")
    tracker._update(2.2, "stream")
    listener.assert_not_called()  # delivery is deferred to the bus worker

    await tracker.bus.drain()
    updates = [c.args[0] for c in listener.call_args_list]
    assert all(isinstance(u, PriceUpdate) for u in updates)
    assert updates[0].previous_price is None
    assert updates[1].previous_price == 2.0
    assert updates[1].change_percent == pytest.approx(10.0)
    await tracker.bus.close()


@pytest.mark.asyncio
async def test_slow_listener_failure_does_not_break_tracker(cache, real_clock, instrument):
    tracker = PriceTracker(instrument, AsyncMock(), cache=cache, clock=real_clock)
    tracker.add_listener(MagicMock(side_effect=RuntimeError("boom")))
    ok = MagicMock()
    tracker.add_listener(ok)

    tracker._update(1.0, "stream")
    await tracker.bus.drain()
    ok.assert_called_once()
    assert tracker.current_price == 1.0
    await tracker.bus.close()


@pytest.mark.asyncio
async def test_migration_notifies_listeners(cache, real_clock, instrument):
    fetcher = AsyncMock(side_effect=[rpc_sample(1.0), rpc_sample(1.5, VenueTag.AMM)])
    tracker = PriceTracker(instrument, fetcher, cache=cache, clock=real_clock)
    migrated = MagicMock()
    tracker.on_migration(migrated)

    await tracker.refresh()
    await tracker.refresh()
    await tracker.bus.drain()

    migrated.assert_called_once_with(VenueTag.AMM)
    assert tracker.venue is VenueTag.AMM
    await tracker.bus.close()


@pytest.mark.asyncio
async def test_fetch_errors_are_logged_not_raised(cache, real_clock, instrument, caplog):
    tracker = PriceTracker(instrument, AsyncMock(side_effect=RuntimeError("rpc down")), cache=cache, clock=real_clock)
    await tracker.refresh()
    assert tracker.current_price is None
    assert "rpc down" in caplog.text


def test_price_change_and_volatility(cache, instrument):
    clock = MagicMock()
    clock.now.return_value = 100.0
    tracker = PriceTracker(instrument, AsyncMock(), cache=cache, clock=clock)
    for p in (1.0, 1.1, 1.0, 1.2):
        tracker.history.append(PriceSample(price=p, timestamp=90.0, source=PriceSource.TRACKER))

    change = tracker.price_change(60)
    assert change["percent"] == pytest.approx(20.0)
    assert change["high"] == 1.2 and change["low"] == 1.0
    assert tracker.volatility(60) > 0
    assert tracker.price_change(5) == {"change": 0.0, "percent": 0.0}


def test_default_stream_message_parsing():
    assert _default_parse('{"price": 0.5}') == 0.5
    assert _default_parse('{"data": {"price": "0.25"}}') == 0.25
    assert _default_parse('{"price": 0}') is None
    assert _default_parse("not json") is None


@pytest.mark.asyncio
async def test_polls_every_interval_without_a_stream(cache, clock, instrument):
    fetcher = AsyncMock(return_value=rpc_sample(1.0))
    tracker = PriceTracker(instrument, fetcher, cache=cache, poll_interval=1.0, clock=clock)
    started_at = clock.now()
    await tracker.start()

    for _ in range(10):
        await asyncio.sleep(0)
    cycles = int(clock.now() - started_at)
    await tracker.stop()

    assert cycles >= 5
    # one initial fetch, then one per completed poll interval
    assert fetcher.await_count >= cycles
