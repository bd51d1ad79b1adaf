import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple

from dotenv import load_dotenv

from .calculator import DEFAULT_CGPA_CREDITS

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class ConfigError(RuntimeError):
    pass


@dataclass(frozen=True)
class Settings:
    bot_token: str
    admin_id: str
    firebase_config: Dict[str, Any]
    admin_name: str = 'Admin'
    bot_name: Optional[str] = None
    public_url: Optional[str] = None
    port: int = 5000
    uptimerobot_api_key: Optional[str] = None
    session_ttl: float = 1800
    broadcast_delay: float = 0.05
    broadcast_batch_size: int = 25
    cgpa_credits: Tuple[int, int] = DEFAULT_CGPA_CREDITS
    log_level: str = 'INFO'

    def is_admin(self, user_id) -> bool:
        return user_id is not None and str(user_id) == self.admin_id

    @property
    def webhook_path(self) -> str:
        return f"/webhook/{self.bot_token}"

    @property
    def webhook_url(self) -> Optional[str]:
        if not self.public_url:
            return None
        return self.public_url.rstrip('/') + self.webhook_path

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'Settings':
        """Read settings once at startup. A missing credential is fatal."""
        if environ is None:
            load_dotenv()
            environ = os.environ

        def required(name):
            value = (environ.get(name) or '').strip()
            if not value:
                raise ConfigError(f"{name} is missing. Put it in .env or the environment")
            return value

        token = required('TELEGRAM_TOKEN')
        admin_id = required('ADMIN_ID')
        try:
            firebase_config = json.loads(required('FIREBASE_CONFIG_JSON'))
        except json.JSONDecodeError as e:
            raise ConfigError(f"FIREBASE_CONFIG_JSON is not valid JSON: {e}") from e

        try:
            credits = tuple(int(c) for c in environ.get('CGPA_CREDITS', '30,33').split(','))
            if len(credits) != 2 or min(credits) <= 0:
                raise ValueError(credits)
            return cls(
                bot_token=token,
                admin_id=admin_id,
                firebase_config=firebase_config,
                admin_name=environ.get('ADMIN_NAME', 'Admin'),
                bot_name=environ.get('BOT_NAME') or None,
                public_url=environ.get('PUBLIC_URL') or None,
                port=int(environ.get('PORT', 5000)),
                uptimerobot_api_key=environ.get('UPTIMEROBOT_API_KEY') or None,
                session_ttl=float(environ.get('SESSION_TTL', 1800)),
                broadcast_delay=float(environ.get('BROADCAST_DELAY', 0.05)),
                broadcast_batch_size=int(environ.get('BROADCAST_BATCH_SIZE', 25)),
                cgpa_credits=credits,
                log_level=environ.get('LOG_LEVEL', 'INFO').upper(),
            )
        except ValueError as e:
            raise ConfigError(f"invalid numeric setting: {e}") from e


def configure_logging(level: str = 'INFO') -> None:
    logging.basicConfig(format=LOG_FORMAT, level=level)
    # httpx logs every request URL, and Telegram URLs contain the bot token.
    logging.getLogger('httpx').setLevel(logging.WARNING)
