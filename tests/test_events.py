import logging
from unittest.mock import MagicMock

import pytest

from pumpbot.models.price import VenueTag
from pumpbot.models.trade_event import TradeEvent, TradeReceipt
from pumpbot.modules.events import TRADE_TOPIC, BusEventSink, LoggingEventSink
from pumpbot.utils.event_bus import EventBus


def trade_event(kind="sell", profit=12.5):
    receipt = TradeReceipt(
        signature="sig-1", side=kind, instrument="mint", venue=VenueTag.AMM, amount=1.0, submitted_at=1.0
    )
    return TradeEvent(
        kind=kind, instrument="mint", strategy="grid", amount=1.0, price=0.5,
        reason="level 1 take-profit", receipt=receipt, timestamp=1.0, profit_percent=profit,
    )


def test_logging_sink_formats_trades(caplog):
    caplog.set_level(logging.INFO)
    sink = LoggingEventSink(logging.getLogger("test.sink"), prefix="[grid] ")
    sink.trade(trade_event())
    sink.log(logging.WARNING, "halted")
    assert "[grid] SELL" in caplog.text
    assert "+12.50%" in caplog.text
    assert "[grid] halted" in caplog.text


@pytest.mark.asyncio
async def test_bus_sink_publishes_trade_events():
    bus = EventBus()
    handler = MagicMock()
    bus.subscribe(TRADE_TOPIC, handler)

    event = trade_event("buy", None)
    BusEventSink(bus).trade(event)
    await bus.drain()

    handler.assert_called_once_with(event)
    await bus.close()


@pytest.mark.asyncio
async def test_bus_keeps_delivering_after_handler_failure(caplog):
    bus = EventBus()
    seen = []

    async def ok(payload):
        seen.append(payload)

    bus.subscribe("topic", MagicMock(side_effect=RuntimeError("boom")))
    bus.subscribe("topic", ok)
    bus.publish("topic", 1)
    bus.publish("topic", 2)
    await bus.drain()

    assert seen == [1, 2]
    assert "handler for 'topic' failed" in caplog.text
    await bus.close()


@pytest.mark.asyncio
async def test_publish_without_subscribers_is_a_noop():
    bus = EventBus()
    bus.publish("nobody", 1)
    await bus.drain()
    await bus.close()


def test_trade_event_to_dict():
    data = trade_event().to_dict()
    assert data["receipt"]["venue"] == "amm"
    assert data["profit_percent"] == 12.5
