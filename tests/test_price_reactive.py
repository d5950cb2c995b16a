import pytest

from pumpbot.models.config import PriceReactiveConfig
from pumpbot.models.position import Position
from pumpbot.models.price import PriceSample, PriceSource
from pumpbot.modules.rolling_window import RollingWindow
from pumpbot.modules.stats import StatsRecorder
from pumpbot.modules.strategy.base import Buy, Hold, Sell, TickContext
from pumpbot.modules.strategy.price_reactive import PriceReactivePolicy


def context(prices, position=None):
    window = RollingWindow(12)
    for p in prices:
        window.push(PriceSample(price=p, timestamp=0.0, source=PriceSource.RPC))
    return TickContext(
        instrument=None,
        price=prices[-1],
        sample=window.latest,
        window=window,
        position=position,
        now=0.0,
        last_action_at=None,
        stats=StatsRecorder(),
    )


def position_at(price, amount=1.0):
    pos = Position(opened_at=0.0)
    pos.add(amount, price)
    return pos


@pytest.mark.asyncio
async def test_dip_buy_then_pump_sell(make_engine, tick_prices, sink):
    engine = make_engine(
        "price-reactive", {"buyDipPercent": 15, "sellPumpPercent": 20, "stopLossPercent": 25}
    )
    await engine.start(run_loop=False)

    await tick_prices(engine, [100, 100, 100])
    assert sink.trades == []

    await tick_prices(engine, [85])
    assert [(t.kind, t.price) for t in sink.trades] == [("buy", 85)]

    await tick_prices(engine, [102])
    assert [t.kind for t in sink.trades] == ["buy", "sell"]
    assert sink.trades[-1].profit_percent == pytest.approx(20.0)

    stats = await engine.stop()
    assert (stats.buys, stats.sells, stats.wins) == (1, 1, 1)
    assert stats.total_profit_percent == pytest.approx(20.0)


def test_no_entry_on_shallow_dip():
    policy = PriceReactivePolicy(PriceReactiveConfig())
    assert isinstance(policy.evaluate(context([100, 100, 90])), Hold)


def test_entry_sizing_comes_from_config():
    policy = PriceReactivePolicy(PriceReactiveConfig(tradePercent=0.1, maxPositionPercent=0.3))
    action = policy.evaluate(context([100, 100, 80]))
    assert isinstance(action, Buy)
    assert action.fraction == 0.1
    assert action.max_position_fraction == 0.3


def test_stop_loss_exit():
    policy = PriceReactivePolicy(PriceReactiveConfig())
    action = policy.evaluate(context([100, 80, 74], position=position_at(100)))
    assert isinstance(action, Sell)
    assert action.reason.startswith("stop-loss")


def test_stop_loss_wins_over_take_profit_when_both_trigger():
    # only reachable with a config that bypasses validation
    cfg = PriceReactiveConfig.model_construct(stop_loss_percent=-5, sell_pump_percent=3)
    policy = PriceReactivePolicy(cfg)
    action = policy.evaluate(context([100, 100, 104], position=position_at(100)))
    assert action.reason.startswith("stop-loss")


def test_momentum_exit_from_window_low_while_in_profit():
    policy = PriceReactivePolicy(PriceReactiveConfig(sellPumpPercent=20))
    # entry 100, dipped to 60, recovered to 110: +10% (< 20) but +83% off the low
    action = policy.evaluate(context([100, 60, 110], position=position_at(100)))
    assert isinstance(action, Sell)
    assert action.reason.startswith("momentum")


def test_no_momentum_exit_while_at_a_loss():
    policy = PriceReactivePolicy(PriceReactiveConfig())
    action = policy.evaluate(context([100, 60, 95], position=position_at(100)))
    assert isinstance(action, Hold)
