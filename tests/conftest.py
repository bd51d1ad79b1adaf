from unittest.mock import AsyncMock, MagicMock

import pytest

from gpabot.config import Settings
from gpabot.sessions import SessionStore

ADMIN_ID = 999
STUDENT_ID = 100


class MemoryStorage:
    """In-memory stand-in for FirestoreStorage with the same coroutine API."""

    def __init__(self):
        self.logs = []
        self.users = {}
        self.fail = False

    def _check(self):
        if self.fail:
            raise RuntimeError("storage is down")

    async def append(self, record):
        self._check()
        record = dict(record, id=f"log{len(self.logs) + 1}")
        self.logs.append(record)
        return record['id']

    async def query_by_user(self, user_id, limit=5):
        self._check()
        records = [r for r in self.logs if r['userId'] == user_id]
        return sorted(records, key=lambda r: r['timestamp'], reverse=True)[:limit]

    async def query_by_verification_id(self, verification_id):
        self._check()
        return next((r for r in self.logs if r.get('verificationId') == verification_id), None)

    async def list_recent(self, limit=10):
        self._check()
        return sorted(self.logs, key=lambda r: r['timestamp'], reverse=True)[:limit]

    async def upsert_user(self, profile):
        self._check()
        self.users.setdefault(profile['id'], {}).update(profile, last_active='2024-05-01T10:00:00+00:00')

    async def get_user(self, user_id):
        self._check()
        return self.users.get(user_id)

    async def count_by_user(self, user_id):
        self._check()
        return sum(1 for r in self.logs if r['userId'] == user_id)

    async def list_recipient_ids(self):
        self._check()
        return sorted(set(self.users) | {r['userId'] for r in self.logs})


def make_settings(**overrides):
    values = dict(
        bot_token='123:ABC',
        admin_id=str(ADMIN_ID),
        firebase_config={},
        admin_name='Hana',
        bot_name='AAU GPA Bot',
        broadcast_delay=0,
        broadcast_batch_size=0,
    )
    values.update(overrides)
    return Settings(**values)


def make_update(text=None, user_id=STUDENT_ID, chat_id=None):
    user = MagicMock()
    user.id = user_id
    user.username = 'abebe'
    user.first_name = 'Abebe'
    user.last_name = 'Kebede'
    user.mention_html.return_value = '<a href="tg://user?id=100">Abebe</a>'

    reply = AsyncMock()
    message = MagicMock()
    message.text = text
    message.reply_text = reply
    message.reply_html = reply
    message.reply_document = AsyncMock()

    update = MagicMock()
    update.effective_user = user
    update.effective_chat.id = chat_id if chat_id is not None else user_id
    update.message = message
    update.effective_message = message
    return update


def replies(update):
    """Texts sent back through reply_text/reply_html, in order."""
    return [c.args[0] if c.args else c.kwargs['text'] for c in update.message.reply_text.call_args_list]


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def sessions():
    return SessionStore(ttl=600)


@pytest.fixture
def context(storage, settings, sessions):
    context = MagicMock()
    context.args = None
    context.bot = MagicMock()
    context.bot.first_name = 'AAU GPA Bot'
    context.bot.send_message = AsyncMock()
    context.bot_data = {
        'storage': storage,
        'settings': settings,
        'sessions': sessions,
        'uptime': None,
    }
    return context
