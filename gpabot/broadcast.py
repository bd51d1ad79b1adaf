import asyncio
import logging
from datetime import datetime
from typing import Dict, Iterable, NamedTuple, Optional

from telegram.error import RetryAfter, TelegramError

from . import __version__

logger = logging.getLogger(__name__)

BATCH_PAUSE = 1.0


class BroadcastResult(NamedTuple):
    sent: int
    failed: int

    @property
    def total(self) -> int:
        return self.sent + self.failed


def expand_macros(text: str, bot_name: str, admin_name: str, now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    macros: Dict[str, str] = {
        '{{VERSION}}': __version__,
        '{{DATE}}': now.strftime('%Y-%m-%d'),
        '{{TIME}}': now.strftime('%H:%M'),
        '{{DATETIME}}': now.strftime('%Y-%m-%d %H:%M'),
        '{{BOT_NAME}}': bot_name,
        '{{ADMIN}}': admin_name,
    }
    for token, value in macros.items():
        text = text.replace(token, value)
    return text


async def deliver(bot, recipients: Iterable[int], text: str,
                  delay: float = 0.05, batch_size: int = 25) -> BroadcastResult:
    """Send ``text`` to every recipient in turn and count the outcome.

    Telegram allows roughly 30 messages a second, so sends are spaced by
    ``delay`` and every ``batch_size`` messages the loop pauses for a second.
    A ``RetryAfter`` answer is honoured once for that recipient; any other
    failure is counted and the loop moves on.
    """
    sent = failed = 0
    for n, chat_id in enumerate(recipients, start=1):
        try:
            try:
                await bot.send_message(chat_id=chat_id, text=text)
            except RetryAfter as e:
                wait = e.retry_after.total_seconds() if hasattr(e.retry_after, 'total_seconds') else e.retry_after
                logger.warning("Flood limit hit, waiting %ss before retrying %s", wait, chat_id)
                await asyncio.sleep(wait)
                await bot.send_message(chat_id=chat_id, text=text)
            sent += 1
        except TelegramError as e:
            failed += 1
            logger.warning("Failed to send broadcast to %s: %s", chat_id, e)
        except Exception:
            failed += 1
            logger.exception("Unexpected error sending broadcast to %s", chat_id)

        if batch_size and n % batch_size == 0:
            await asyncio.sleep(BATCH_PAUSE)
        elif delay:
            await asyncio.sleep(delay)

    logger.info("Broadcast finished: %d sent, %d failed", sent, failed)
    return BroadcastResult(sent, failed)
