import pytest

from pumpbot.modules.strategy.base import Buy, Hold, Sell

ACC = {
    "buyAmount": 0.05,
    "buyIntervalMs": 30000,
    "sellTriggerPercent": 15,
    "sellChunkPercent": 0.25,
    "targetProfitPercent": 20,
    "stopLossPercent": 30,
}


@pytest.mark.asyncio
async def test_accumulates_on_cooldown(make_engine, tick_prices, sink, clock):
    engine = make_engine("accumulate-distribute", ACC)
    await engine.start(run_loop=False)

    actions = await tick_prices(engine, [100, 100])
    assert isinstance(actions[0], Buy)
    assert isinstance(actions[1], Hold)

    clock.advance(30)
    await tick_prices(engine, [100])
    assert [t.amount for t in sink.trades] == pytest.approx([0.05, 0.05])
    assert engine.policy.phase == "accumulate"


@pytest.mark.asyncio
async def test_distributes_in_chunks_then_closes_at_target(make_engine, tick_prices, sink, clock):
    engine = make_engine("accumulate-distribute", ACC)
    await engine.start(run_loop=False)
    await tick_prices(engine, [100])

    actions = await tick_prices(engine, [116])
    assert isinstance(actions[-1], Sell) and actions[-1].portion == 0.25
    assert engine.policy.phase == "distribute"
    assert engine.position.size == pytest.approx(0.05 * 0.75)

    actions = await tick_prices(engine, [121])
    assert isinstance(actions[-1], Sell) and actions[-1].portion == 1.0
    assert engine.position is None

    clock.advance(30)
    await tick_prices(engine, [121])
    assert engine.policy.phase == "accumulate"
    assert [t.kind for t in sink.trades] == ["buy", "sell", "sell", "buy"]


@pytest.mark.asyncio
async def test_phase_hysteresis(make_engine, tick_prices):
    engine = make_engine(
        "accumulate-distribute", dict(ACC, buyAmount=1.0, sellChunkPercent=0.1)
    )
    await engine.start(run_loop=False)
    await tick_prices(engine, [100, 115])
    assert engine.policy.phase == "distribute"

    # 10% profit: below trigger but above half of it → still distributing
    await tick_prices(engine, [110])
    assert engine.policy.phase == "distribute"

    await tick_prices(engine, [107])
    assert engine.policy.phase == "accumulate"


@pytest.mark.asyncio
async def test_stop_loss_from_any_phase(make_engine, tick_prices, sink):
    engine = make_engine("accumulate-distribute", ACC)
    await engine.start(run_loop=False)
    actions = await tick_prices(engine, [100, 69])
    assert isinstance(actions[-1], Sell)
    assert actions[-1].reason.startswith("stop-loss")
    assert engine.position is None
    assert engine.policy.phase == "accumulate"
    assert sink.trades[-1].profit_percent == pytest.approx(-31.0)


@pytest.mark.asyncio
async def test_tiny_remainder_is_sold_whole(make_engine, tick_prices):
    engine = make_engine("accumulate-distribute", dict(ACC, buyAmount=0.01))
    await engine.start(run_loop=False)
    # chunk worth 0.25 * 0.01 * 1.16 < 0.005 minimum trade
    actions = await tick_prices(engine, [100, 116])
    assert actions[-1].portion == 1.0
    assert "too small" in actions[-1].reason


@pytest.mark.asyncio
async def test_spread_mm_alias(make_engine):
    engine = make_engine("spread-mm")
    assert engine.strategy_id == "accumulate-distribute"


@pytest.mark.asyncio
async def test_chunked_exit_is_booked_as_one_trade(make_engine, tick_prices, sink):
    engine = make_engine("accumulate-distribute", dict(ACC, buyAmount=1.0))
    await engine.start(run_loop=False)
    await tick_prices(engine, [100, 116, 116, 116, 116])
    assert [t.kind for t in sink.trades] == ["buy"] + ["sell"] * 4

    stats = engine.stats.snapshot()
    assert stats.sells == 4
    assert (stats.wins, stats.losses) == (0, 0)
    assert stats.total_profit_percent == 0.0

    await tick_prices(engine, [121])
    assert engine.position is None
    left = 0.75 ** 4
    stats = engine.stats.snapshot()
    assert (stats.sells, stats.wins, stats.losses) == (5, 1, 0)
    assert stats.total_profit_percent == pytest.approx(16 * (1 - left) + 21 * left)
    assert stats.biggest_win_percent == pytest.approx(stats.total_profit_percent)
