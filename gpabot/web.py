# --- HTTP surface: health checks, log listing, result verification, webhook ---
import logging
import time

from flask import Flask, abort, jsonify, request
from telegram import Update

from . import __version__
from .reports import format_date
from .storage import student_name

logger = logging.getLogger(__name__)

DEFAULT_LOG_LIMIT = 50
MAX_LOG_LIMIT = 200
STORAGE_TIMEOUT = 15


def create_app(settings, storage, runner) -> Flask:
    """Build the Flask app.

    ``runner`` owns the bot's event loop; every storage call and every
    incoming update is handed to that loop through ``runner.submit``.
    """
    app = Flask(__name__)
    started = time.monotonic()

    def _authorized() -> bool:
        header = request.headers.get('Authorization', '')
        scheme, _, token = header.partition(' ')
        return scheme.lower() == 'bearer' and settings.is_admin(token.strip())

    @app.route('/')
    def index():
        # UptimeRobot pings this route.
        return "Bot is alive!", 200

    @app.route('/health')
    def health():
        return jsonify(status='ok', version=__version__, uptime=int(time.monotonic() - started))

    @app.route('/logs')
    def logs():
        if not _authorized():
            return jsonify(error='unauthorized'), 401
        limit = max(1, min(request.args.get('limit', DEFAULT_LOG_LIMIT, type=int), MAX_LOG_LIMIT))
        try:
            records = runner.submit(storage.list_recent(limit), timeout=STORAGE_TIMEOUT)
        except Exception:
            logger.exception("GET /logs failed")
            return jsonify(error='storage unavailable'), 503
        return jsonify(logs=records, count=len(records))

    @app.route('/api/verify', methods=['POST'])
    def verify():
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            payload = {}
        verification_id = str(payload.get('verificationId') or payload.get('id') or '').strip().upper()
        if not verification_id:
            return jsonify(valid=False, error='verificationId is required'), 400
        try:
            record = runner.submit(storage.query_by_verification_id(verification_id), timeout=STORAGE_TIMEOUT)
        except Exception:
            logger.exception("Verification lookup failed for %s", verification_id)
            return jsonify(valid=False, error='storage unavailable'), 503
        if record is None:
            return jsonify(valid=False)
        return jsonify(
            valid=True,
            verificationId=verification_id,
            student=student_name(record),
            type=record.get('type', 'GPA'),
            gpa=record.get('gpa'),
            grade=record.get('grade'),
            date=format_date(record.get('timestamp', '')),
            timestamp=record.get('timestamp'),
            program=record.get('program'),
            semester=record.get('semester'),
            result=record.get('results') or record.get('semesters') or [],
        )

    @app.route('/webhook/<token>', methods=['POST'])
    def webhook(token):
        if token != settings.bot_token:
            abort(403)
        application = runner.application
        update = Update.de_json(request.get_json(force=True), application.bot)
        runner.submit(application.update_queue.put(update), timeout=STORAGE_TIMEOUT)
        return "OK", 200

    return app
