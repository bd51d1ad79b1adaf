# --- 1. IMPORTS ---
import asyncio
import logging
import threading
import time

from telegram import BotCommand, Update
from telegram.ext import (
    Application,
    CallbackQueryHandler,
    CommandHandler,
    MessageHandler,
    TypeHandler,
    filters,
)

from . import admin, handlers
from .config import Settings, configure_logging
from .sessions import SessionStore
from .storage import FirestoreStorage
from .uptime import UptimeClient
from .web import create_app

logger = logging.getLogger(__name__)

BOT_COMMANDS = [
    BotCommand('start', 'Main menu'),
    BotCommand('verify', 'Verify a result by its ID'),
    BotCommand('cancel', 'Stop the current calculation'),
    BotCommand('help', 'How to use the bot'),
]


# --- 2. BOT SETUP ---

def build_application(settings: Settings, storage) -> Application:
    ptb_app = Application.builder().token(settings.bot_token).build()
    ptb_app.bot_data.update(
        settings=settings,
        storage=storage,
        sessions=SessionStore(ttl=settings.session_ttl),
        uptime=UptimeClient(settings.uptimerobot_api_key) if settings.uptimerobot_api_key else None,
        started_at=time.monotonic(),
    )

    # Group -1 runs before the handlers below for every update.
    ptb_app.add_handler(TypeHandler(Update, handlers.track_user), group=-1)

    ptb_app.add_handler(CommandHandler('start', handlers.start_command))
    ptb_app.add_handler(CommandHandler('help', handlers.help_command))
    ptb_app.add_handler(CommandHandler('cancel', handlers.cancel_command))
    ptb_app.add_handler(CommandHandler('verify', handlers.verify_command))
    ptb_app.add_handler(CommandHandler('history', handlers.history_command))

    ptb_app.add_handler(CommandHandler('broadcast', admin.broadcast_command))
    ptb_app.add_handler(CommandHandler('logs', admin.logs_command))
    ptb_app.add_handler(CommandHandler('status', admin.status_command))
    ptb_app.add_handler(CommandHandler('user', admin.user_command))

    ptb_app.add_handler(CallbackQueryHandler(handlers.report_callback, pattern=r'^pdf:'))
    ptb_app.add_handler(MessageHandler(filters.UpdateType.MESSAGE & filters.TEXT & ~filters.COMMAND, handlers.handle_text))
    ptb_app.add_error_handler(handlers.error_handler)
    return ptb_app


# --- 3. RUNNING THE BOT NEXT TO FLASK ---

class BotRunner(threading.Thread):
    """Runs the bot on its own event loop in a background thread.

    Flask serves in the main thread, so anything it needs from the bot side
    (storage queries, queued webhook updates) goes through ``submit``.
    """

    def __init__(self, application: Application, webhook_url=None):
        super().__init__(name='telegram-bot', daemon=True)
        self.application = application
        self.webhook_url = webhook_url
        self.loop = asyncio.new_event_loop()
        self._ready = threading.Event()
        self._error = None

    def run(self):
        asyncio.set_event_loop(self.loop)
        try:
            self.loop.run_until_complete(self._startup())
        except Exception as e:
            logger.exception("Bot failed to start")
            self._error = e
            self._ready.set()
            return
        self._ready.set()
        self.loop.run_forever()

    async def _startup(self):
        await self.application.initialize()
        await self.application.bot.set_my_commands(BOT_COMMANDS)
        if self.webhook_url:
            await self.application.bot.set_webhook(self.webhook_url, allowed_updates=Update.ALL_TYPES)
            logger.info("Webhook set, waiting for updates on the Flask app")
        else:
            await self.application.bot.delete_webhook()
            await self.application.updater.start_polling(allowed_updates=Update.ALL_TYPES)
            logger.info("Bot started polling...")
        await self.application.start()

    def wait_ready(self, timeout=None):
        self._ready.wait(timeout)
        if self._error is not None:
            raise RuntimeError("Telegram bot failed to start") from self._error

    def submit(self, coro, timeout=None):
        """Run ``coro`` on the bot loop from another thread and wait for the result."""
        self.wait_ready()
        return asyncio.run_coroutine_threadsafe(coro, self.loop).result(timeout)

    def stop(self):
        async def _shutdown():
            if self.application.updater.running:
                await self.application.updater.stop()
            await self.application.stop()
            await self.application.shutdown()

        self.submit(_shutdown(), timeout=30)
        self.loop.call_soon_threadsafe(self.loop.stop)


def main():
    settings = Settings.from_env()
    configure_logging(settings.log_level)

    storage = FirestoreStorage.from_service_account(settings.firebase_config)
    ptb_app = build_application(settings, storage)

    # Start the bot in a separate background thread
    # This allows the Flask web server and the Telegram bot to run at the same time
    runner = BotRunner(ptb_app, webhook_url=settings.webhook_url)
    runner.start()
    runner.wait_ready()

    app = create_app(settings, storage, runner)
    try:
        app.run(host='0.0.0.0', port=settings.port)
    finally:
        logger.info("Shutting down bot")
        runner.stop()
