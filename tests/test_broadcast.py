from datetime import datetime
from unittest.mock import AsyncMock

import pytest
from telegram.error import Forbidden, RetryAfter, TimedOut

from gpabot import __version__, broadcast
from gpabot.broadcast import BroadcastResult, deliver, expand_macros


def test_expand_macros():
    now = datetime(2024, 6, 1, 14, 5)
    text = expand_macros(
        "{{BOT_NAME}} {{VERSION}} by {{ADMIN}} on {{DATE}} at {{TIME}} ({{DATETIME}})",
        bot_name="GPA Bot", admin_name="Hana", now=now,
    )
    assert text == f"GPA Bot {__version__} by Hana on 2024-06-01 at 14:05 (2024-06-01 14:05)"


def test_unknown_tokens_left_alone():
    assert expand_macros("{{NOPE}}", bot_name="b", admin_name="a") == "{{NOPE}}"


@pytest.mark.asyncio
@pytest.mark.parametrize("failing", [set(), {3}, {1, 5, 9}, set(range(1, 11))])
async def test_tally_counts_every_recipient(failing):
    async def send_message(chat_id, text):
        if chat_id in failing:
            raise Forbidden("blocked")

    bot = AsyncMock()
    bot.send_message.side_effect = send_message
    result = await deliver(bot, range(1, 11), "hi", delay=0, batch_size=0)
    assert result == BroadcastResult(sent=10 - len(failing), failed=len(failing))
    assert result.total == 10


@pytest.mark.asyncio
async def test_failures_are_not_retried():
    bot = AsyncMock()
    bot.send_message.side_effect = TimedOut()
    result = await deliver(bot, [1, 2], "hi", delay=0, batch_size=0)
    assert result == BroadcastResult(0, 2)
    assert bot.send_message.await_count == 2


@pytest.mark.asyncio
async def test_flood_limit_waits_and_sends_once_more(monkeypatch):
    sleep = AsyncMock()
    monkeypatch.setattr(broadcast.asyncio, 'sleep', sleep)

    bot = AsyncMock()
    bot.send_message.side_effect = [RetryAfter(3), None, None]
    result = await deliver(bot, [1, 2], "hi", delay=0, batch_size=0)

    assert result == BroadcastResult(2, 0)
    assert sleep.await_args_list[0].args[0] == 3


@pytest.mark.asyncio
async def test_delay_and_batch_pause(monkeypatch):
    sleep = AsyncMock()
    monkeypatch.setattr(broadcast.asyncio, 'sleep', sleep)

    bot = AsyncMock()
    await deliver(bot, range(5), "hi", delay=0.05, batch_size=2)

    waits = [c.args[0] for c in sleep.await_args_list]
    assert waits == [0.05, broadcast.BATCH_PAUSE, 0.05, broadcast.BATCH_PAUSE, 0.05]


@pytest.mark.asyncio
async def test_unexpected_errors_are_counted_and_loop_continues():
    bot = AsyncMock()
    bot.send_message.side_effect = [RuntimeError("connection reset"), None, ValueError("bad chat")]
    result = await deliver(bot, [1, 2, 3], "hi", delay=0, batch_size=0)
    assert result == BroadcastResult(sent=1, failed=2)
    assert bot.send_message.await_count == 3
