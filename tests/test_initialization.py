import logging
import os

import pytest

from pumpbot.core.initialization import initialize_components, load_configuration
from pumpbot.core.orchestrator import BotManager
from pumpbot.exceptions import ConfigurationError
from pumpbot.models.price import VenueTag
from pumpbot.modules.paper_venue import PaperExchange

ENV_KEYS = [
    "STRATEGY", "STRATEGY_OPTIONS", "INSTRUMENT", "PAPER_BALANCE", "GAS_RESERVE",
    "DB_PATH", "TELEGRAM_TOKEN", "TELEGRAM_CHAT_ID", "PRICE_WS_URL", "LOG_MAX_MB", "LOG_BACKUPS",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    yield
    # load_dotenv writes straight into os.environ
    for key in ENV_KEYS:
        os.environ.pop(key, None)


def test_load_configuration_from_env_file(tmp_path):
    env = tmp_path / "config.env"
    env.write_text(
        "STRATEGY=grid\n"
        'STRATEGY_OPTIONS={"gridLevels": 3}\n'
        "PAPER_BALANCE=2.5\n"
        "GAS_RESERVE=0.01\n"
        "LOG_MAX_MB=2\n"
        "LOG_BACKUPS=3\n"
    )
    conf = load_configuration(str(env))

    assert conf["STRATEGY"] == "grid"
    assert conf["STRATEGY_OPTIONS"] == {"gridLevels": 3}
    assert conf["PAPER_BALANCE"] == 2.5
    assert conf["GAS_RESERVE"] == 0.01
    assert conf["MIN_TRADE"] == 0.005
    assert conf["TELEGRAM"] == {"token": None, "chat_id": None}
    assert (conf["LOG_MAX_MB"], conf["LOG_BACKUPS"]) == (2.0, 3)


def test_bad_strategy_options_rejected(tmp_path):
    env = tmp_path / "config.env"
    env.write_text("STRATEGY_OPTIONS={not json\n")
    with pytest.raises(ConfigurationError):
        load_configuration(str(env))


def test_initialize_components_wires_paper_runtime(tmp_path):
    conf = load_configuration(str(tmp_path / "missing.env"))
    components = initialize_components(conf, overrides={"logger": logging.getLogger("test.init")})

    assert isinstance(components["gateway"], PaperExchange)
    assert set(components["venues"]) == set(VenueTag)
    assert isinstance(components["manager"], BotManager)
    assert components["persistence"] is None
    assert components["router"].gas_reserve == conf["GAS_RESERVE"]


def test_custom_gateway_requires_venues(tmp_path):
    conf = load_configuration(str(tmp_path / "missing.env"))
    with pytest.raises(ConfigurationError):
        initialize_components(conf, overrides={"logger": logging.getLogger("test.init"), "gateway": object()})
