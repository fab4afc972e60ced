# ABOUTME: Runtime settings for the forecast proxy: upstream URLs, retry policies, and the default place.
# ABOUTME: Loads overrides from the environment (and a .env file) via python-dotenv.

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from forecast_proxy.models import Place

GEOCODING_URL = "https://geocoding-api.open-meteo.com/v1/search"
REVERSE_GEOCODING_URL = "https://geocoding-api.open-meteo.com/v1/reverse"
FORECAST_URL = "https://api.open-meteo.com/v1/forecast"
AIR_QUALITY_URL = "https://air-quality-api.open-meteo.com/v1/air-quality"

ENV_PREFIX = "FORECAST_PROXY_"


class RetryPolicy(BaseModel):
    """Per-upstream timeout and retry budget. Durations are in seconds."""

    timeout: float = Field(default=10.0, gt=0)
    max_retries: int = Field(default=3, ge=0)
    backoff_base: float = Field(default=0.5, ge=0)


DEFAULT_PLACE = Place(
    name="Stockholm",
    country="Sweden",
    latitude=59.3293,
    longitude=18.0686,
    timezone="Europe/Stockholm",
)


class Settings(BaseModel):
    """Everything the proxy needs to reach its upstreams and fill in defaults."""

    geocoding_url: str = GEOCODING_URL
    reverse_geocoding_url: str = REVERSE_GEOCODING_URL
    forecast_url: str = FORECAST_URL
    air_quality_url: str = AIR_QUALITY_URL
    user_agent: str = "weather-god/1.0"
    language: str = "en"

    default_city: str = "Stockholm"
    default_place: Place = DEFAULT_PLACE
    forecast_days: int = Field(default=7, ge=1, le=16)

    geocode_policy: RetryPolicy = RetryPolicy(timeout=10.0, max_retries=3)
    reverse_geocode_policy: RetryPolicy = RetryPolicy(timeout=5.0, max_retries=0)
    weather_policy: RetryPolicy = RetryPolicy(timeout=12.0, max_retries=3)
    # Air quality is best-effort, so it gets a smaller retry budget than the forecast.
    air_quality_policy: RetryPolicy = RetryPolicy(timeout=12.0, max_retries=2)

    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8000


_ENV_FIELDS = {
    "GEOCODING_URL": "geocoding_url",
    "REVERSE_GEOCODING_URL": "reverse_geocoding_url",
    "FORECAST_URL": "forecast_url",
    "AIR_QUALITY_URL": "air_quality_url",
    "USER_AGENT": "user_agent",
    "DEFAULT_CITY": "default_city",
    "FORECAST_DAYS": "forecast_days",
    "LOG_LEVEL": "log_level",
    "HOST": "host",
    "PORT": "port",
}


def load_settings(environ: dict[str, str] | None = None) -> Settings:
    """Build Settings from FORECAST_PROXY_* environment variables.

    Reads a .env file first when no explicit environment is passed in.
    """
    if environ is None:
        load_dotenv()
        environ = dict(os.environ)

    overrides = {}
    for suffix, field in _ENV_FIELDS.items():
        value = environ.get(ENV_PREFIX + suffix)
        if value:
            overrides[field] = value
    return Settings.model_validate(overrides)
