# ABOUTME: ASGI web entry point serving the normalized forecast to the web app and browser extension.
# ABOUTME: Orchestrates place resolution, weather and air-quality fetches, and normalization per request.

import asyncio
import contextlib
import logging

import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from forecast_proxy.config import load_settings
from forecast_proxy.deps import ForecastDeps, create_http_client
from forecast_proxy.models import ErrorResponse, ForecastQuery
from forecast_proxy.normalizer import normalize
from forecast_proxy.weather_service import fetch_air_quality, fetch_weather, resolve_place

logger = logging.getLogger(__name__)

ERROR_MESSAGE = "Forecast API failed"

# Forecasts are time-sensitive; neither browsers nor proxies may keep a copy.
NO_STORE_HEADERS = {"Cache-Control": "no-store, max-age=0"}


async def handle(query: ForecastQuery, deps: ForecastDeps) -> tuple[int, dict]:
    """Run one forecast request and return (status, JSON body).

    Weather data is mandatory: any failure on that path becomes a 502. Air quality
    is fetched alongside it but never fails the request.
    """
    client, settings = deps.http_client, deps.settings
    try:
        place = await resolve_place(client, settings, query)
        # A weather failure cancels the air-quality task still in flight.
        async with asyncio.TaskGroup() as tg:
            weather = tg.create_task(fetch_weather(client, settings, place))
            air_quality = tg.create_task(fetch_air_quality(client, settings, place))
        response = normalize(place, weather.result(), air_quality.result())
    except Exception as e:
        cause = e.exceptions[0] if isinstance(e, ExceptionGroup) else e
        logger.exception("Forecast request failed for %s", query.model_dump(exclude_none=True))
        error = ErrorResponse(error=ERROR_MESSAGE, detail=str(cause) or type(cause).__name__)
        return 502, error.model_dump()

    return 200, response.model_dump(mode="json")


def create_app(deps: ForecastDeps | None = None) -> Starlette:
    """Build the Starlette app. Without explicit deps, settings come from the environment."""
    if deps is None:
        settings = load_settings()
        deps = ForecastDeps(http_client=create_http_client(settings), settings=settings)

    async def forecast(request: Request) -> JSONResponse:
        query = ForecastQuery.from_params(request.query_params)
        status, body = await handle(query, deps)
        return JSONResponse(body, status_code=status, headers=NO_STORE_HEADERS)

    @contextlib.asynccontextmanager
    async def lifespan(app):
        yield
        await deps.http_client.aclose()

    return Starlette(routes=[Route("/api/forecast", forecast, methods=["GET"])], lifespan=lifespan)


def main() -> None:
    """Serve the proxy with uvicorn using environment-derived settings."""
    settings = load_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    deps = ForecastDeps(http_client=create_http_client(settings), settings=settings)
    uvicorn.run(create_app(deps), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
