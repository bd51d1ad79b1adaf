# --- Admin-only commands ---
import functools
import html
import logging
import time
from datetime import timedelta

import httpx
from telegram import Update
from telegram.constants import MessageLimit
from telegram.ext import ContextTypes

from . import __version__
from .broadcast import deliver, expand_macros
from .reports import format_date
from .sessions import AwaitingBroadcast
from .storage import student_name
from .uptime import UptimeError

logger = logging.getLogger(__name__)

NOT_AUTHORIZED = "⛔ You are not authorized to use this command."
DEFAULT_LOG_LIMIT = 10
MAX_LOG_LIMIT = 50


def admin_only(func):
    """Reject the call unless the sender passes the configured admin check."""
    @functools.wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE, *args, **kwargs):
        user = update.effective_user
        user_id = user.id if user else None
        if not context.bot_data['settings'].is_admin(user_id):
            logger.warning("Unauthorized %s attempt by %s", func.__name__, user_id)
            await update.effective_message.reply_text(NOT_AUTHORIZED)
            return None
        return await func(update, context, *args, **kwargs)
    return wrapper


@admin_only
async def broadcast_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if context.args:
        # Everything after the command, as typed.
        await run_broadcast(update, context, update.message.text.split(None, 1)[1])
        return
    context.bot_data['sessions'].set(update.effective_chat.id, AwaitingBroadcast())
    await update.message.reply_text(
        "📝 Send the message you want to broadcast (or /cancel).\n"
        "Macros: {{VERSION}} {{DATE}} {{TIME}} {{DATETIME}} {{BOT_NAME}} {{ADMIN}}"
    )


@admin_only
async def run_broadcast(update: Update, context: ContextTypes.DEFAULT_TYPE, text: str) -> None:
    settings = context.bot_data['settings']
    bot_name = settings.bot_name or context.bot.first_name
    message = "📢 Update:\n" + expand_macros(text, bot_name=bot_name, admin_name=settings.admin_name)

    try:
        recipients = await context.bot_data['storage'].list_recipient_ids()
    except Exception:
        logger.exception("Could not load broadcast recipients")
        await update.message.reply_text("😔 Could not load the user list. Broadcast not sent.")
        return

    await update.message.reply_text(f"🚀 Sending broadcast to {len(recipients)} users...")
    result = await deliver(context.bot, recipients, message,
                           delay=settings.broadcast_delay, batch_size=settings.broadcast_batch_size)
    await update.message.reply_text(
        f"✅ Broadcast complete\nSent: {result.sent}\nFailed: {result.failed}"
    )


@admin_only
async def logs_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    limit = DEFAULT_LOG_LIMIT
    if context.args and context.args[0].isdigit():
        limit = max(1, min(int(context.args[0]), MAX_LOG_LIMIT))

    try:
        records = await context.bot_data['storage'].list_recent(limit)
    except Exception:
        logger.exception("Could not list logs")
        await update.message.reply_text("😔 Could not fetch logs right now.")
        return

    if not records:
        await update.message.reply_text("No calculations logged yet.")
        return

    lines = [f"🗂 <b>Last {len(records)} calculations</b>\n"]
    for r in records:
        lines.append(
            f"{format_date(r.get('timestamp', ''))} · {html.escape(student_name(r))} "
            f"(<code>{r.get('userId')}</code>) · {r.get('type', 'GPA')} <b>{r.get('gpa')}</b>"
        )
    text = "\n".join(lines)
    if len(text) > MessageLimit.MAX_TEXT_LENGTH:
        text = text[:MessageLimit.MAX_TEXT_LENGTH - 1].rsplit("\n", 1)[0]
    await update.message.reply_html(text)


@admin_only
async def status_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    uptime = timedelta(seconds=int(time.monotonic() - context.bot_data.get('started_at', time.monotonic())))
    lines = [
        "🩺 <b>Bot status</b>\n",
        f"Version: {__version__}",
        f"Uptime: {uptime}",
        f"Active sessions: {len(context.bot_data['sessions'])}",
    ]

    client = context.bot_data.get('uptime')
    if client is None:
        lines.append("\nUptimeRobot: not configured")
    else:
        try:
            monitors = await client.get_monitors()
        except (httpx.HTTPError, UptimeError) as e:
            logger.warning("UptimeRobot query failed: %s", e)
            lines.append("\n⚠️ Could not reach UptimeRobot.")
        else:
            lines.append("")
            for m in monitors:
                ratio = f" · {m.uptime_ratio:.2f}%" if m.uptime_ratio is not None else ""
                lines.append(f"{m.status} <b>{html.escape(m.name)}</b>{ratio}")
            if not monitors:
                lines.append("No monitors found.")

    await update.message.reply_html("\n".join(lines))


@admin_only
async def user_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not context.args or not context.args[0].lstrip('-').isdigit():
        await update.message.reply_text("Usage: /user <id>")
        return
    user_id = int(context.args[0])

    try:
        storage = context.bot_data['storage']
        profile = await storage.get_user(user_id)
        count = await storage.count_by_user(user_id)
    except Exception:
        logger.exception("User lookup failed for %s", user_id)
        await update.message.reply_text("😔 Could not look up that user right now.")
        return

    if profile is None:
        await update.message.reply_text(f"No user with id {user_id}.")
        return

    name = f"{profile.get('first_name', '')} {profile.get('last_name', '')}".strip() or '-'
    username = f"@{profile['username']}" if profile.get('username') else '-'
    await update.message.reply_html(
        f"👤 <b>{html.escape(name)}</b>\n"
        f"ID: <code>{user_id}</code>\n"
        f"Username: {html.escape(username)}\n"
        f"Last active: {format_date(profile.get('last_active', ''))}\n"
        f"Calculations: {count}"
    )
