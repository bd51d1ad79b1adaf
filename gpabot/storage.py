"""Firestore persistence for users and calculation logs.

Two collections are used:

``users``
    One document per chat id, merged on every interaction.
``logs``
    Append-only calculation records (GPA and CGPA), queried by user id,
    by verification id and by recency.
"""
import logging
import secrets
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import firebase_admin
from firebase_admin import credentials, firestore, firestore_async
from google.cloud.firestore_v1 import FieldFilter

from .calculator import breakdown, format_gpa
from .grades import get_grade_by_point

logger = logging.getLogger(__name__)

USERS = 'users'
LOGS = 'logs'

GPA = 'GPA'
CGPA = 'CGPA'


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec='seconds')


def new_verification_id() -> str:
    return 'GPA-' + secrets.token_hex(4).upper()


def _base_record(profile: Dict[str, Any], kind: str, value: float, verification_id: str,
                 timestamp: Optional[str]) -> Dict[str, Any]:
    return {
        'userId': profile['id'],
        'username': profile.get('username', ''),
        'firstName': profile.get('first_name', ''),
        'lastName': profile.get('last_name', ''),
        'timestamp': timestamp or utc_now(),
        'type': kind,
        'gpa': format_gpa(value),
        'grade': get_grade_by_point(round(value, 2)).letter,
        'verificationId': verification_id,
    }


def build_gpa_record(profile, entry, gpa: float, verification_id: str,
                     timestamp: Optional[str] = None) -> Dict[str, Any]:
    record = _base_record(profile, GPA, gpa, verification_id, timestamp)
    record.update({
        'year': entry.year,
        'semester': entry.semester,
        'program': entry.program,
        'results': [
            {
                'course': r.course.name,
                'credit': r.course.credit,
                'score': r.score,
                'grade': r.grade.letter,
                'point': r.grade.point,
            }
            for r in breakdown(entry.scores, entry.courses)
        ],
    })
    return record


def build_cgpa_record(profile, gpas: Sequence[float], credits: Sequence[int], cgpa: float,
                      verification_id: str, timestamp: Optional[str] = None) -> Dict[str, Any]:
    record = _base_record(profile, CGPA, cgpa, verification_id, timestamp)
    record['semesters'] = [
        {'semester': f"Semester {i}", 'gpa': format_gpa(gpa), 'credit': credit}
        for i, (gpa, credit) in enumerate(zip(gpas, credits), start=1)
    ]
    return record


def student_name(record: Dict[str, Any]) -> str:
    name = f"{record.get('firstName', '')} {record.get('lastName', '')}".strip()
    if name:
        return name
    if record.get('username'):
        return '@' + record['username']
    return str(record.get('userId', 'Unknown'))


class FirestoreStorage:
    def __init__(self, db=None, app: Optional[firebase_admin.App] = None):
        self._db = db
        self._app = app

    @classmethod
    def from_service_account(cls, config: Dict[str, Any]) -> 'FirestoreStorage':
        app = firebase_admin.initialize_app(credentials.Certificate(config))
        return cls(app=app)

    @property
    def db(self):
        # The async client binds to the event loop it is first used on, so it
        # is created lazily inside the bot's loop rather than at import time.
        if self._db is None:
            self._db = firestore_async.client(self._app)
        return self._db

    @staticmethod
    def _to_dict(doc) -> Dict[str, Any]:
        data = doc.to_dict() or {}
        data['id'] = doc.id
        return data

    async def _collect(self, query) -> List[Dict[str, Any]]:
        return [self._to_dict(doc) async for doc in query.stream()]

    async def append(self, record: Dict[str, Any]) -> str:
        _, ref = await self.db.collection(LOGS).add(record)
        logger.info("Stored %s record %s for user %s", record.get('type'), ref.id, record.get('userId'))
        return ref.id

    async def query_by_user(self, user_id: int, limit: int = 5) -> List[Dict[str, Any]]:
        query = (
            self.db.collection(LOGS)
            .where(filter=FieldFilter('userId', '==', user_id))
            .order_by('timestamp', direction=firestore.Query.DESCENDING)
            .limit(limit)
        )
        return await self._collect(query)

    async def query_by_verification_id(self, verification_id: str) -> Optional[Dict[str, Any]]:
        query = self.db.collection(LOGS).where(filter=FieldFilter('verificationId', '==', verification_id)).limit(1)
        records = await self._collect(query)
        return records[0] if records else None

    async def list_recent(self, limit: int = 10) -> List[Dict[str, Any]]:
        query = self.db.collection(LOGS).order_by('timestamp', direction=firestore.Query.DESCENDING).limit(limit)
        return await self._collect(query)

    async def upsert_user(self, profile: Dict[str, Any]) -> None:
        data = dict(profile, last_active=utc_now())
        await self.db.collection(USERS).document(str(profile['id'])).set(data, merge=True)

    async def get_user(self, user_id: int) -> Optional[Dict[str, Any]]:
        doc = await self.db.collection(USERS).document(str(user_id)).get()
        return self._to_dict(doc) if doc.exists else None

    async def count_by_user(self, user_id: int) -> int:
        query = self.db.collection(LOGS).where(filter=FieldFilter('userId', '==', user_id)).count(alias='total')
        results = await query.get()
        return int(results[0][0].value) if results else 0

    async def list_recipient_ids(self) -> List[int]:
        """Distinct chat ids known from the users and logs collections."""
        ids = set()
        async for doc in self.db.collection(USERS).stream():
            ids.add(int(doc.id))
        async for doc in self.db.collection(LOGS).select(['userId']).stream():
            user_id = (doc.to_dict() or {}).get('userId')
            if user_id is not None:
                ids.add(int(user_id))
        return sorted(ids)
