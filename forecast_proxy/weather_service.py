# ABOUTME: Service layer for Open-Meteo geocoding, forecast, and air-quality calls.
# ABOUTME: Resolves a query to a Place and fetches raw weather and air-quality data for it.

import logging

import httpx
from pydantic import ValidationError

from forecast_proxy.config import Settings
from forecast_proxy.errors import ForecastProxyError, UpstreamPayloadError
from forecast_proxy.fetcher import fetch_with_retry
from forecast_proxy.models import AIR_QUALITY_FIELDS, AirQuality, ForecastQuery, Place, WeatherResult
from forecast_proxy.normalizer import align_series

logger = logging.getLogger(__name__)

HOURLY_PARAMS = "temperature_2m,apparent_temperature,relative_humidity_2m,precipitation_probability,weathercode"

DAILY_PARAMS = "weathercode,temperature_2m_max,temperature_2m_min,sunrise,sunset"

AIR_QUALITY_PARAMS = "european_aqi,pm2_5"


async def geocode(client: httpx.AsyncClient, settings: Settings, name: str) -> Place | None:
    """Geocode a place name to the single best match, or None when nothing matches."""
    resp = await fetch_with_retry(
        client,
        settings.geocoding_url,
        params={"name": name, "count": 1, "language": settings.language, "format": "json"},
        policy=settings.geocode_policy,
        headers=_headers(settings),
    )
    data = _read_json(resp)

    results = data.get("results")
    if not results or not isinstance(results, list):
        return None
    return _place_from_result(resp, results[0])


async def reverse_geocode(client: httpx.AsyncClient, settings: Settings, latitude: float, longitude: float) -> Place:
    """Name the place nearest to the coordinates. Best effort: falls back to a "lat,lon" label.

    The returned Place always keeps the caller's coordinates, not the matched place's.
    """
    label = coordinate_label(latitude, longitude)
    try:
        resp = await fetch_with_retry(
            client,
            settings.reverse_geocoding_url,
            params={"latitude": latitude, "longitude": longitude, "count": 1, "language": settings.language},
            policy=settings.reverse_geocode_policy,
            headers=_headers(settings),
        )
        results = _read_json(resp).get("results") or []
    except Exception as e:
        logger.warning("Reverse geocoding failed for %s: %s", label, e)
        results = []

    first = results[0] if isinstance(results, list) and results and isinstance(results[0], dict) else {}
    try:
        return Place(
            name=first.get("name") or label,
            country=first.get("country"),
            admin1=first.get("admin1"),
            latitude=latitude,
            longitude=longitude,
            timezone=first.get("timezone"),
        )
    except ValidationError as e:
        logger.warning("Ignoring malformed reverse geocoding result for %s: %s", label, e)
        return Place(name=label, latitude=latitude, longitude=longitude)


async def resolve_place(client: httpx.AsyncClient, settings: Settings, query: ForecastQuery) -> Place:
    """Turn a query into a Place.

    Valid coordinates win over a city name. A blank city means the default city.
    Unresolvable names fall back to the configured default place instead of failing.
    """
    coordinates = query.coordinates
    if coordinates is not None:
        return await reverse_geocode(client, settings, *coordinates)

    city = (query.city or "").strip() or settings.default_city
    try:
        place = await geocode(client, settings, city)
    except ForecastProxyError as e:
        logger.warning("Geocoding failed for %r: %s", city, e)
        place = None

    if place is None:
        logger.warning("No geocoding match for %r, using default place %s", city, settings.default_place.name)
        return settings.default_place
    return place


async def fetch_weather(client: httpx.AsyncClient, settings: Settings, place: Place) -> WeatherResult:
    """Fetch current conditions plus hourly and daily series. Failures propagate to the caller."""
    resp = await fetch_with_retry(
        client,
        settings.forecast_url,
        params={
            "latitude": place.latitude,
            "longitude": place.longitude,
            "hourly": HOURLY_PARAMS,
            "daily": DAILY_PARAMS,
            "current_weather": "true",
            "forecast_days": settings.forecast_days,
            "timezone": "auto",
        },
        policy=settings.weather_policy,
        headers=_headers(settings),
    )
    data = _read_json(resp)

    return WeatherResult(
        timezone=_as_str(data.get("timezone")),
        current_weather=_as_block(data.get("current_weather")),
        hourly=_as_block(data.get("hourly")),
        daily=_as_block(data.get("daily")),
    )


async def fetch_air_quality(client: httpx.AsyncClient, settings: Settings, place: Place) -> AirQuality:
    """Fetch hourly AQI and PM2.5. Never raises: any failure yields AirQuality.empty().

    Value columns are aligned with `time`; a missing or misaligned column becomes nulls.
    """
    try:
        resp = await fetch_with_retry(
            client,
            settings.air_quality_url,
            params={
                "latitude": place.latitude,
                "longitude": place.longitude,
                "hourly": AIR_QUALITY_PARAMS,
                "timezone": "auto",
            },
            policy=settings.air_quality_policy,
            headers=_headers(settings),
        )
        hourly = _as_block(_read_json(resp).get("hourly")) or {}
        return _aligned_air_quality(hourly)
    except Exception as e:
        logger.warning("Air quality fetch failed for %s: %s", place.name, e)
        return AirQuality.empty()


def _aligned_air_quality(hourly: dict) -> AirQuality:
    aligned = align_series(hourly, AIR_QUALITY_FIELDS)
    if aligned is None:
        return AirQuality.empty()
    columns = {field: aligned.get(field, [None] * len(aligned["time"])) for field in AIR_QUALITY_FIELDS}
    return AirQuality(time=aligned["time"], **columns)


def coordinate_label(latitude: float, longitude: float) -> str:
    """Format coordinates as a display name, e.g. "59.33,18.07"."""
    return f"{latitude:.2f},{longitude:.2f}"


def _headers(settings: Settings) -> dict[str, str]:
    return {"User-Agent": settings.user_agent}


def _read_json(resp: httpx.Response) -> dict:
    """Decode a JSON object body or raise UpstreamPayloadError."""
    try:
        data = resp.json()
    except ValueError as e:
        raise UpstreamPayloadError(f"Invalid JSON from {resp.request.url}: {e}") from e
    if not isinstance(data, dict):
        raise UpstreamPayloadError(f"Expected a JSON object from {resp.request.url}, got {type(data).__name__}")
    return data


def _place_from_result(resp: httpx.Response, result) -> Place:
    try:
        return Place.model_validate(
            {key: result.get(key) for key in ("name", "country", "admin1", "latitude", "longitude", "timezone")}
        )
    except (AttributeError, ValidationError) as e:
        raise UpstreamPayloadError(f"Malformed geocoding result from {resp.request.url}: {e}") from e


def _as_block(value) -> dict | None:
    return value if isinstance(value, dict) else None


def _as_str(value) -> str | None:
    return value if isinstance(value, str) and value else None
