import logging
from typing import List, NamedTuple, Optional

import httpx

logger = logging.getLogger(__name__)

API_URL = 'https://api.uptimerobot.com/v2/getMonitors'

STATUS_LABELS = {
    0: '⏸ Paused',
    1: '⏳ Not checked yet',
    2: '🟢 Up',
    8: '🟠 Seems down',
    9: '🔴 Down',
}


class UptimeError(Exception):
    pass


class Monitor(NamedTuple):
    name: str
    url: str
    status: str
    uptime_ratio: Optional[float]


class UptimeClient:
    """Minimal UptimeRobot client for the admin /status command."""

    def __init__(self, api_key: str, timeout: float = 10.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    async def get_monitors(self) -> List[Monitor]:
        data = {'api_key': self.api_key, 'format': 'json', 'all_time_uptime_ratio': '1'}
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(API_URL, data=data)
            response.raise_for_status()
            payload = response.json()

        if payload.get('stat') != 'ok':
            message = (payload.get('error') or {}).get('message', 'unknown error')
            raise UptimeError(f"UptimeRobot: {message}")

        monitors = []
        for item in payload.get('monitors', []):
            ratio = item.get('all_time_uptime_ratio')
            monitors.append(Monitor(
                name=item.get('friendly_name', '?'),
                url=item.get('url', ''),
                status=STATUS_LABELS.get(item.get('status'), f"Unknown ({item.get('status')})"),
                uptime_ratio=float(ratio) if ratio not in (None, '') else None,
            ))
        logger.info("Fetched %d monitors from UptimeRobot", len(monitors))
        return monitors
