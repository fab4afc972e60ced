# ABOUTME: Shared test fixtures for the forecast proxy test suite.
# ABOUTME: Provides fast-retry settings and a URL-routing mock HTTP client.

from unittest.mock import AsyncMock

import httpx
import pytest

from forecast_proxy.config import RetryPolicy, Settings

_FAST = RetryPolicy(timeout=1.0, max_retries=2, backoff_base=0.0)


@pytest.fixture
def settings() -> Settings:
    """Settings with zero backoff so retry paths don't sleep."""
    return Settings(
        geocode_policy=_FAST,
        reverse_geocode_policy=RetryPolicy(timeout=1.0, max_retries=0, backoff_base=0.0),
        weather_policy=_FAST,
        air_quality_policy=RetryPolicy(timeout=1.0, max_retries=1, backoff_base=0.0),
    )


def json_response(json_data, status_code: int = 200, url: str = "https://test") -> httpx.Response:
    """Build a real httpx.Response carrying JSON, bound to a request."""
    return httpx.Response(status_code=status_code, json=json_data, request=httpx.Request("GET", url))


def routed_client(routes: dict) -> AsyncMock:
    """Create a mock httpx.AsyncClient that answers by URL.

    Each route value is a list consumed one item per call; items are httpx.Response
    objects, exceptions to raise, or async callables awaited with the request arguments.
    The last item repeats once the list runs out.
    """
    mock = AsyncMock(spec=httpx.AsyncClient)
    queues = {url: list(items) for url, items in routes.items()}

    async def fake_get(url, **kwargs):
        queue = queues.get(url)
        if not queue:
            raise AssertionError(f"Unexpected request to {url}")
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, BaseException):
            raise item
        if callable(item):
            return await item(url, **kwargs)
        return item

    mock.get.side_effect = fake_get
    return mock


def calls_to(client: AsyncMock, url: str) -> list:
    """The recorded calls made to `url`."""
    return [c for c in client.get.call_args_list if c.args and c.args[0] == url]


STOCKHOLM_GEOCODE = {
    "results": [
        {
            "name": "Stockholm",
            "country": "Sweden",
            "admin1": "Stockholm County",
            "latitude": 59.33,
            "longitude": 18.07,
            "timezone": "Europe/Stockholm",
        }
    ]
}

FORECAST = {
    "latitude": 59.33,
    "longitude": 18.07,
    "timezone": "Europe/Stockholm",
    "current_weather": {"temperature": 4.2, "weathercode": 3, "windspeed": 11.5, "time": "2024-01-01T12:00"},
    "hourly": {
        "time": ["2024-01-01T11:00", "2024-01-01T12:00", "2024-01-01T13:00"],
        "temperature_2m": [3.9, 4.2, 4.4],
        "apparent_temperature": [0.5, 0.9, 1.1],
        "relative_humidity_2m": [88, 86, 85],
        "precipitation_probability": [10, 20, 35],
        "weathercode": [2, 3, 3],
    },
    "daily": {
        "time": ["2024-01-01", "2024-01-02"],
        "weathercode": [3, 61],
        "temperature_2m_max": [5.0, 6.1],
        "temperature_2m_min": [-1.0, 0.2],
        "sunrise": ["2024-01-01T08:44", "2024-01-02T08:43"],
        "sunset": ["2024-01-01T14:54", "2024-01-02T14:56"],
    },
}

AIR_QUALITY = {
    "hourly": {
        "time": ["2024-01-01T11:00", "2024-01-01T12:00", "2024-01-01T13:00"],
        "european_aqi": [20, 24, 27],
        "pm2_5": [4.1, 5.3, 6.0],
    }
}
