"""
core/initialization.py
----------------------
Loads configuration from .env and wires all runtime components with simple
dependency-injection (DI) overrides.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from pumpbot.core.orchestrator import BotManager
from pumpbot.exceptions import ConfigurationError
from pumpbot.modules.aggregator import DEFAULT_AGGREGATOR_URL, AggregatorClient
from pumpbot.modules.paper_venue import PaperExchange
from pumpbot.modules.price_cache import CACHE_TTL_MS, PriceCache
from pumpbot.modules.price_feed import DEFAULT_TRACKER_TTL, PriceFeed
from pumpbot.modules.price_tracker import WebSocketPriceStream
from pumpbot.modules.router import GAS_RESERVE, MIN_TRADE, ExecutionRouter
from pumpbot.notifiers.hub import NotifierHub
from pumpbot.persistence.sqlite import SQLitePersistence
from pumpbot.utils.event_bus import EventBus
from pumpbot.utils.logger import logger_from_config


def _float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc


def load_configuration(env_path: str = "config.env") -> Dict[str, Any]:
    """
    Load settings from an .env-style file and return a structured config dict.
    """
    log = logging.getLogger(__name__)
    load_dotenv(dotenv_path=env_path)

    options_raw = os.getenv("STRATEGY_OPTIONS", "") or "{}"
    try:
        options = json.loads(options_raw)
    except ValueError as exc:
        raise ConfigurationError(f"STRATEGY_OPTIONS is not valid JSON: {exc}") from exc
    if not isinstance(options, dict):
        raise ConfigurationError("STRATEGY_OPTIONS must be a JSON object")

    conf: Dict[str, Any] = {
        "WALLET": os.getenv("WALLET", "paper"),
        "PAPER_BALANCE": _float("PAPER_BALANCE", 1.0),
        "STRATEGY": os.getenv("STRATEGY", "price-reactive"),
        "INSTRUMENT": os.getenv("INSTRUMENT", ""),
        "STRATEGY_OPTIONS": options,
        "AGGREGATOR_URL": os.getenv("AGGREGATOR_URL", DEFAULT_AGGREGATOR_URL),
        "PRICE_WS_URL": os.getenv("PRICE_WS_URL", ""),
        "GAS_RESERVE": _float("GAS_RESERVE", GAS_RESERVE),
        "MIN_TRADE": _float("MIN_TRADE", MIN_TRADE),
        "CACHE_TTL_MS": int(_float("CACHE_TTL_MS", CACHE_TTL_MS)),
        "TRACKER_POLL_INTERVAL": _float("TRACKER_POLL_INTERVAL", 1.0),
        "TRACKER_TTL": _float("TRACKER_TTL", DEFAULT_TRACKER_TTL),
        "DB_PATH": os.getenv("DB_PATH", ""),
        "TELEGRAM": {
            "token": os.getenv("TELEGRAM_TOKEN"),
            "chat_id": os.getenv("TELEGRAM_CHAT_ID"),
        },
        "LOG_LEVEL": os.getenv("LOG_LEVEL", "INFO"),
        "LOG_FILE": os.getenv("LOG_FILE", "logs/pumpbot.log"),
        "LOG_MAX_MB": _float("LOG_MAX_MB", 5),
        "LOG_BACKUPS": int(_float("LOG_BACKUPS", 5)),
    }

    log.debug("Parsed STRATEGY: %s  INSTRUMENT: %s", conf["STRATEGY"], conf["INSTRUMENT"])
    return conf


def initialize_components(
    config: Dict[str, Any],
    overrides: Optional[Dict[str, object]] = None,
) -> Dict[str, object]:
    """
    Construct and wire together all runtime components (supports DI via overrides).

    Keys you can override:
    {"logger", "bus", "aggregator", "gateway", "venues", "price_feed",
     "router", "persistence", "notifier"}
    """
    overrides = overrides or {}

    # 1) Logger
    logger = overrides.get("logger") or logger_from_config(config)

    # 2) Event bus shared by trackers, engines and subscribers
    bus = overrides.get("bus") or EventBus()

    # 3) External price aggregator
    aggregator = overrides.get("aggregator") or AggregatorClient(
        config.get("AGGREGATOR_URL", DEFAULT_AGGREGATOR_URL), logger=logger
    )

    # 4) Chain gateway + venues (paper exchange unless injected)
    gateway = overrides.get("gateway")
    venues = overrides.get("venues")
    if gateway is None:
        gateway = PaperExchange(config.get("PAPER_BALANCE", 1.0), aggregator.get_price, logger=logger)
    if venues is None:
        if not isinstance(gateway, PaperExchange):
            raise ConfigurationError("venues must be provided together with a custom gateway")
        venues = gateway.venues()

    # 5) Price feed with its tracker registry
    price_feed = overrides.get("price_feed")
    if price_feed is None:
        cache = PriceCache(ttl_ms=config.get("CACHE_TTL_MS", CACHE_TTL_MS))
        ws_url = config.get("PRICE_WS_URL")
        price_feed = PriceFeed(
            gateway,
            venues,
            cache=cache,
            aggregator=aggregator,
            tracker_ttl=config.get("TRACKER_TTL", DEFAULT_TRACKER_TTL),
            logger=logger,
            stream_factory=(lambda _inst: WebSocketPriceStream(ws_url, logger=logger)) if ws_url else None,
            poll_interval=config.get("TRACKER_POLL_INTERVAL", 1.0),
            bus=bus,
        )

    # 6) Execution router
    router = overrides.get("router") or ExecutionRouter(
        gateway,
        venues,
        config.get("WALLET", "paper"),
        gas_reserve=config.get("GAS_RESERVE", GAS_RESERVE),
        min_trade=config.get("MIN_TRADE", MIN_TRADE),
        logger=logger,
    )

    # 7) Optional persistence + notifications, both fed from the bus
    persistence = overrides.get("persistence")
    if persistence is None and config.get("DB_PATH"):
        persistence = SQLitePersistence(config["DB_PATH"])
    if persistence is not None:
        persistence.attach(bus)

    notifier = overrides.get("notifier") or NotifierHub(config)
    notifier.attach(bus)

    manager = BotManager(price_feed, router, bus=bus, persistence=persistence, logger=logger)

    logger.info("✅ Logger initialized.")
    logger.info("✅ Price feed initialized (%s).", type(price_feed).__name__)
    logger.info("✅ Router initialized on %s.", type(gateway).__name__)
    logger.info("✅ Persistence %s.", "enabled" if persistence is not None else "disabled")

    return {
        "logger": logger,
        "bus": bus,
        "aggregator": aggregator,
        "gateway": gateway,
        "venues": venues,
        "price_feed": price_feed,
        "router": router,
        "persistence": persistence,
        "notifier": notifier,
        "manager": manager,
    }
