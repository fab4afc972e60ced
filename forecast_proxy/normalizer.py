# ABOUTME: Reconciles raw upstream weather and air-quality data into the stable ForecastResponse shape.
# ABOUTME: Fixes timezones, repairs drifted field names, enforces index alignment, and aligns current AQI.

import logging
from collections.abc import Mapping
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ValidationError

from forecast_proxy.models import (
    DAILY_FIELDS,
    HOURLY_FIELDS,
    AirQuality,
    AirQualityReading,
    CurrentWeather,
    DailySeries,
    ForecastResponse,
    HourlySeries,
    Place,
    WeatherResult,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "UTC"
AUTO_TIMEZONE = "auto"

# Known upstream key drift, per block: canonical key -> malformed alternates seen in the wild.
# Add new quirks here; repair only fills a canonical key that is missing.
KEY_REPAIRS: dict[str, dict[str, tuple[str, ...]]] = {
    "current_weather": {
        "weathercode": ("weather_code",),
        "windspeed": ("wind_speed", "windspeed_10m", "wind_speed_10m"),
    },
    "hourly": {
        "weathercode": ("weather_code",),
        "relative_humidity_2m": ("relativehumidity_2m",),
    },
    "daily": {
        "weathercode": ("weather_code",),
        "temperature_2m_max": ("temperature_2m_ma", "temperature2m_max"),
        "temperature_2m_min": ("temperature_2m_mi", "temperature2m_min", "temperature_2m_min "),
    },
}


def is_valid_timezone(name: str | None) -> bool:
    """Whether `name` can be used to format local times, i.e. is in the IANA database."""
    if not name or not isinstance(name, str) or name == AUTO_TIMEZONE:
        return False
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        return False
    return True


def resolve_timezone(reported: str | None, place_timezone: str | None) -> str:
    """Pick the upstream-reported zone, else the geocoded one, else UTC; then validate it."""
    if reported and reported != AUTO_TIMEZONE:
        chosen = reported
    elif place_timezone and place_timezone != AUTO_TIMEZONE:
        chosen = place_timezone
    else:
        chosen = DEFAULT_TIMEZONE

    if not is_valid_timezone(chosen):
        logger.warning("Unrecognized timezone %r, falling back to %s", chosen, DEFAULT_TIMEZONE)
        return DEFAULT_TIMEZONE
    return chosen


def repair_keys(block: Mapping[str, Any], repairs: Mapping[str, tuple[str, ...]]) -> dict[str, Any]:
    """Copy values from malformed alternate keys into missing canonical keys."""
    repaired = dict(block)
    for canonical, alternates in repairs.items():
        if repaired.get(canonical) is not None:
            continue
        for alternate in alternates:
            if repaired.get(alternate) is not None:
                logger.debug("Repaired upstream key %r -> %r", alternate, canonical)
                repaired[canonical] = repaired[alternate]
                break
    return repaired


def align_series(block: Mapping[str, Any], fields: tuple[str, ...]) -> dict[str, Any] | None:
    """Keep `time` plus every listed array whose length matches it.

    Returns None when the block has no usable `time` array. Arrays of the wrong length
    or type are dropped so every emitted array is index-aligned with `time`.
    """
    times = block.get("time")
    if not isinstance(times, list):
        return None

    aligned: dict[str, Any] = {"time": times}
    for field in fields:
        values = block.get(field)
        if values is None:
            continue
        if not isinstance(values, list) or len(values) != len(times):
            logger.warning(
                "Dropping misaligned series %r (%s values for %d timestamps)",
                field,
                len(values) if isinstance(values, list) else type(values).__name__,
                len(times),
            )
            continue
        aligned[field] = values
    return aligned


def current_air_quality(air_quality: AirQuality, current_time: str | None) -> AirQualityReading | None:
    """The air-quality sample at exactly `current_time`, or None. No nearest-hour matching."""
    if not current_time or not air_quality.time:
        return None
    try:
        idx = air_quality.time.index(current_time)
    except ValueError:
        return None
    return AirQualityReading(
        european_aqi=_get_at(air_quality.european_aqi, idx),
        pm2_5=_get_at(air_quality.pm2_5, idx),
    )


def normalize(place: Place, weather: WeatherResult, air_quality: AirQuality | None) -> ForecastResponse:
    """Assemble the client payload from a resolved place and the upstream results."""
    timezone = resolve_timezone(weather.timezone, place.timezone)
    place = place.with_timezone(timezone)

    current_weather = _parse_block(CurrentWeather, "current_weather", weather.current_weather)
    hourly = _parse_series(HourlySeries, "hourly", weather.hourly, HOURLY_FIELDS)
    daily = _parse_series(DailySeries, "daily", weather.daily, DAILY_FIELDS)

    air_quality = air_quality or AirQuality.empty()
    current_time = current_weather.time if current_weather else None
    air_quality = air_quality.model_copy(update={"current": current_air_quality(air_quality, current_time)})

    return ForecastResponse(
        place=place,
        timezone=timezone,
        current_weather=current_weather,
        hourly=hourly,
        daily=daily,
        air_quality=air_quality,
    )


def _parse_block(model: type[BaseModel], name: str, raw: Mapping[str, Any] | None):
    if raw is None:
        return None
    try:
        return model.model_validate(repair_keys(raw, KEY_REPAIRS.get(name, {})))
    except ValidationError as e:
        logger.warning("Discarding malformed %s block: %s", name, e)
        return None


def _parse_series(model: type[BaseModel], name: str, raw: Mapping[str, Any] | None, fields: tuple[str, ...]):
    if raw is None:
        return None
    aligned = align_series(repair_keys(raw, KEY_REPAIRS.get(name, {})), fields)
    if aligned is None:
        logger.warning("Discarding %s block without a time axis", name)
        return None
    return _parse_block(model, name, aligned)


def _get_at(column: list, index: int):
    """Safely get value at index from a column array, returning None if missing."""
    if index >= len(column):
        return None
    return column[index]
