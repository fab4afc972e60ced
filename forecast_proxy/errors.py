# ABOUTME: Exception types raised when talking to the upstream weather providers.
# ABOUTME: Classifies fetch failures as retryable (timeout, network, 5xx) or terminal (4xx).


class ForecastProxyError(Exception):
    """Base error for forecast proxy failures."""


class FetchError(ForecastProxyError):
    """An upstream call failed, either at the transport level or with an error status."""

    def __init__(self, url: str, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.message = message
        self.status = status

    @property
    def retryable(self) -> bool:
        """Timeouts and network errors carry no status; those and 5xx are worth another attempt."""
        return self.status is None or 500 <= self.status <= 599

    @property
    def terminal(self) -> bool:
        return self.status is not None and 400 <= self.status <= 499

    def __str__(self) -> str:
        return self.message


class UpstreamPayloadError(ForecastProxyError):
    """Upstream answered successfully but the body was not the expected JSON shape."""
