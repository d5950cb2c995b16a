import pytest
from pydantic import ValidationError

from pumpbot.exceptions import ConfigurationError
from pumpbot.models.config import GridConfig, PriceReactiveConfig, TrendFollowerConfig
from pumpbot.models.instrument import Instrument
from pumpbot.modules.strategy import STRATEGIES, build_config, create_engine, get_strategy_info


def test_defaults_are_resolved():
    cfg = PriceReactiveConfig()
    assert (cfg.buy_dip_percent, cfg.sell_pump_percent, cfg.stop_loss_percent) == (15, 20, 25)
    assert (cfg.trade_percent, cfg.max_position_percent) == (0.20, 0.50)
    assert cfg.check_interval == 5.0
    assert cfg.price_window_size == 12


def test_camel_and_snake_case_accepted():
    assert PriceReactiveConfig(buyDipPercent=10).buy_dip_percent == 10
    assert PriceReactiveConfig(buy_dip_percent=12).buy_dip_percent == 12


def test_config_is_immutable():
    cfg = GridConfig()
    with pytest.raises(ValidationError):
        cfg.grid_levels = 9


@pytest.mark.parametrize(
    "strategy_id, options",
    [
        ("price-reactive", {"stopLossPercent": 0}),
        ("price-reactive", {"tradePercent": 0.6, "maxPositionPercent": 0.5}),
        ("price-reactive", {"unknownOption": 1}),
        ("grid", {"gridLevels": 10, "gridSpacingPercent": 12}),
        ("trend-follower", {"fastPeriod": 8, "slowPeriod": 8}),
        ("accumulate-distribute", {"sellTriggerPercent": 25, "targetProfitPercent": 20}),
        ("volume", {"delayMinMs": 5000, "delayMaxMs": 100}),
        ("volume", {"tradeAmountMin": 0.1}),
    ],
)
def test_invalid_options_raise_configuration_error(strategy_id, options):
    with pytest.raises(ConfigurationError):
        build_config(strategy_id, options)


def test_unknown_strategy_is_configuration_error(feed, router):
    with pytest.raises(ConfigurationError, match="unknown strategy"):
        create_engine("martingale", "7GCihgDB8fe6KNjn2MYtkzZcRjQy3t9GHdC8uHYmW2hr", feed, router)


def test_bad_instrument_is_configuration_error(feed, router):
    with pytest.raises(ConfigurationError):
        create_engine("grid", "not-a-mint", feed, router)


def test_instrument_normalized_from_key_objects():
    class Key:
        def to_base58(self):
            return "So11111111111111111111111111111111111111112"

    assert Instrument.parse(Key()) == Instrument.parse("So11111111111111111111111111111111111111112")


def test_trend_window_fits_slow_period():
    assert TrendFollowerConfig(fastPeriod=5, slowPeriod=20).window_capacity == 22


def test_trend_window_honours_a_larger_window_size():
    cfg = TrendFollowerConfig(fastPeriod=3, slowPeriod=8, priceWindowSize=30)
    assert cfg.window_capacity == 30
    assert TrendFollowerConfig(fastPeriod=3, slowPeriod=8, priceWindowSize=5).window_capacity == 10


def test_strategy_info_lists_every_variant():
    info = {entry["id"]: entry for entry in get_strategy_info()}
    assert set(info) == set(STRATEGIES)
    assert info["price-reactive"]["defaults"]["buyDipPercent"] == 15
    assert info["grid"]["defaults"]["gridLevels"] == 4
