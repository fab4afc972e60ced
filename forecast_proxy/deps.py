# ABOUTME: Dependency container for the forecast endpoint using Pydantic BaseModel.
# ABOUTME: Holds the httpx.AsyncClient and Settings shared by the service-layer calls.

import httpx
from pydantic import BaseModel, ConfigDict

from forecast_proxy.config import Settings


class ForecastDeps(BaseModel):
    """Dependencies injected into the endpoint handler."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    http_client: httpx.AsyncClient
    settings: Settings = Settings()


def create_http_client(settings: Settings) -> httpx.AsyncClient:
    """Create the shared upstream client.

    Retries are handled per call by fetch_with_retry, so the transport itself does not retry.
    Redirects are not followed; a 3xx from an upstream is reported as a failed call.
    """
    return httpx.AsyncClient(headers={"User-Agent": settings.user_agent, "Accept": "application/json"})
