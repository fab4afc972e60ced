# ABOUTME: Pydantic BaseModels for places, upstream weather blocks, and the normalized forecast payload.
# ABOUTME: Defines the stable response schema handed to the web app and browser extension.

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_serializer


class Place(BaseModel):
    """Resolved location with coordinates, optional region metadata, and timezone."""

    model_config = ConfigDict(frozen=True)

    name: str
    country: str | None = None
    admin1: str | None = None
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    timezone: str | None = None

    def with_timezone(self, timezone: str) -> "Place":
        """Return a copy with the timezone back-filled."""
        return self.model_copy(update={"timezone": timezone})


class CurrentWeather(BaseModel):
    """Current conditions block from the forecast endpoint."""

    temperature: float
    weathercode: int
    windspeed: float
    time: str


class _Series(BaseModel):
    """Column-oriented block where every present array is index-aligned with `time`."""

    time: list[str]

    @model_serializer(mode="wrap")
    def _present_arrays_only(self, handler):
        return {key: value for key, value in handler(self).items() if value is not None}


class HourlySeries(_Series):
    """Hourly forecast arrays."""

    temperature_2m: list[float | None] | None = None
    apparent_temperature: list[float | None] | None = None
    relative_humidity_2m: list[float | None] | None = None
    precipitation_probability: list[float | None] | None = None
    weathercode: list[int | None] | None = None


class DailySeries(_Series):
    """Daily forecast arrays."""

    weathercode: list[int | None] | None = None
    temperature_2m_max: list[float | None] | None = None
    temperature_2m_min: list[float | None] | None = None
    sunrise: list[str | None] | None = None
    sunset: list[str | None] | None = None


HOURLY_FIELDS = tuple(name for name in HourlySeries.model_fields if name != "time")
DAILY_FIELDS = tuple(name for name in DailySeries.model_fields if name != "time")


class AirQualityReading(BaseModel):
    """Air-quality sample matching the current-weather timestamp."""

    european_aqi: float | None = None
    pm2_5: float | None = None


AIR_QUALITY_FIELDS = ("european_aqi", "pm2_5")


class AirQuality(BaseModel):
    """Hourly air-quality series plus the sample aligned to current conditions."""

    european_aqi: list[float | None] = []
    pm2_5: list[float | None] = []
    time: list[str] = []
    current: AirQualityReading | None = None

    @classmethod
    def empty(cls) -> "AirQuality":
        return cls()


class WeatherResult(BaseModel):
    """Raw blocks from the forecast endpoint, before key repair and alignment."""

    timezone: str | None = None
    current_weather: dict[str, Any] | None = None
    hourly: dict[str, Any] | None = None
    daily: dict[str, Any] | None = None


class ForecastResponse(BaseModel):
    """Normalized payload returned to clients. Absent sections are null, never omitted."""

    place: Place
    timezone: str
    current_weather: CurrentWeather | None = None
    hourly: HourlySeries | None = None
    daily: DailySeries | None = None
    air_quality: AirQuality = Field(default_factory=AirQuality.empty)


class ErrorResponse(BaseModel):
    error: str
    detail: str


class ForecastQuery(BaseModel):
    """Inbound location query: a free-text city and/or an explicit coordinate pair."""

    city: str | None = None
    lat: float | None = None
    lon: float | None = None

    @classmethod
    def from_params(cls, params: Mapping[str, str]) -> "ForecastQuery":
        """Build a query from raw query-string values.

        Coordinates that do not parse or fall outside the valid range are dropped,
        so a bad `lat`/`lon` degrades to a city lookup instead of an error.
        """
        return cls(
            city=params.get("city"),
            lat=_parse_coordinate(params.get("lat"), 90.0),
            lon=_parse_coordinate(params.get("lon"), 180.0),
        )

    @property
    def coordinates(self) -> tuple[float, float] | None:
        """The (lat, lon) pair when both are present and in range."""
        if self.lat is None or self.lon is None:
            return None
        if not (-90 <= self.lat <= 90 and -180 <= self.lon <= 180):
            return None
        return self.lat, self.lon


def _parse_coordinate(raw: str | None, limit: float) -> float | None:
    if raw is None or not raw.strip():
        return None
    try:
        value = float(raw)
    except ValueError:
        return None
    if not -limit <= value <= limit:
        return None
    return value
