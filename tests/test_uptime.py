import httpx
import pytest

from gpabot.uptime import API_URL, UptimeClient, UptimeError


def client_for(payload, status_code=200, seen=None):
    def handler(request):
        if seen is not None:
            seen.append(request)
        return httpx.Response(status_code, json=payload)
    return UptimeClient('u123-key', transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_get_monitors_parses_response():
    seen = []
    client = client_for({
        'stat': 'ok',
        'monitors': [
            {'friendly_name': 'gpa-bot', 'url': 'https://bot.example/health', 'status': 2,
             'all_time_uptime_ratio': '99.912'},
            {'friendly_name': 'site', 'url': 'https://site.example', 'status': 9},
        ],
    }, seen=seen)

    monitors = await client.get_monitors()

    assert str(seen[0].url) == API_URL
    assert b'api_key=u123-key' in seen[0].content
    assert monitors[0].name == 'gpa-bot'
    assert monitors[0].status == '🟢 Up'
    assert monitors[0].uptime_ratio == pytest.approx(99.912)
    assert monitors[1].status == '🔴 Down'
    assert monitors[1].uptime_ratio is None


@pytest.mark.asyncio
async def test_api_error_raises():
    client = client_for({'stat': 'fail', 'error': {'message': 'api_key is invalid'}})
    with pytest.raises(UptimeError, match='api_key is invalid'):
        await client.get_monitors()


@pytest.mark.asyncio
async def test_http_error_raises():
    client = client_for({}, status_code=500)
    with pytest.raises(httpx.HTTPStatusError):
        await client.get_monitors()
