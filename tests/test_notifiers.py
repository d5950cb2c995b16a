import logging
from unittest.mock import AsyncMock, MagicMock

import pytest
from telegram.error import TelegramError

from pumpbot.models.price import VenueTag
from pumpbot.models.trade_event import TradeEvent, TradeReceipt
from pumpbot.notifiers.base import BaseNotifier
from pumpbot.notifiers.hub import NotifierHub
from pumpbot.notifiers.telegram import TelegramNotifier


class Recorder(BaseNotifier):
    def __init__(self):
        self.sent = []

    async def send(self, text):
        self.sent.append(text)


class Broken(BaseNotifier):
    async def send(self, text):
        raise RuntimeError("offline")


def event():
    receipt = TradeReceipt(
        signature="abc", side="buy", instrument="mint", venue=VenueTag.AMM, amount=0.2, submitted_at=1.0
    )
    return TradeEvent(
        kind="buy", instrument="mint", strategy="grid", amount=0.2, price=0.0001,
        reason="level 1 crossed", receipt=receipt, timestamp=1.0,
    )


@pytest.mark.asyncio
async def test_hub_formats_and_fans_out(caplog):
    good = Recorder()
    hub = NotifierHub({}, backends=[Broken(), good])

    await hub.send_trade_event(event())

    assert len(good.sent) == 1
    assert "BUY" in good.sent[0]
    assert "level 1 crossed" in good.sent[0]
    assert "Broken failed" in caplog.text


def test_hub_without_telegram_config_has_no_backends():
    assert NotifierHub({"TELEGRAM": {"token": None, "chat_id": None}}).backends == []


@pytest.mark.asyncio
async def test_telegram_initializes_once_and_sends():
    bot = MagicMock()
    bot.initialize = AsyncMock()
    bot.send_message = AsyncMock()
    notifier = TelegramNotifier(token="t", chat_id="42", bot=bot)

    await notifier.send("one")
    await notifier.send("two")

    bot.initialize.assert_awaited_once()
    assert bot.send_message.await_count == 2
    assert bot.send_message.await_args.kwargs["chat_id"] == "42"


@pytest.mark.asyncio
async def test_telegram_errors_are_logged_not_raised(caplog):
    caplog.set_level(logging.WARNING)
    bot = MagicMock()
    bot.initialize = AsyncMock()
    bot.send_message = AsyncMock(side_effect=TelegramError("chat not found"))
    notifier = TelegramNotifier(token="t", chat_id="42", bot=bot)

    await notifier.send("hello")
    assert "chat not found" in caplog.text
