# ABOUTME: Resilient upstream GET with a per-attempt timeout and tenacity-driven exponential backoff.
# ABOUTME: Retries timeouts, network errors and 5xx responses; any other non-2xx status fails immediately.

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

import httpx
from tenacity import AsyncRetrying, before_sleep_log, retry_if_exception, stop_after_attempt, wait_exponential

from forecast_proxy.config import RetryPolicy
from forecast_proxy.errors import FetchError

logger = logging.getLogger(__name__)

# Weather changes continuously; never let an intermediate cache answer for us.
NO_CACHE_HEADERS = {"Cache-Control": "no-cache", "Pragma": "no-cache"}


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, FetchError) and exc.retryable


async def fetch_with_retry(
    client: httpx.AsyncClient,
    url: str,
    *,
    params: Mapping[str, Any] | None = None,
    policy: RetryPolicy | None = None,
    headers: Mapping[str, str] | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> httpx.Response:
    """GET `url`, retrying transient failures up to `policy.max_retries` extra times.

    The delay before retry k (0-indexed) is `backoff_base * 2**k`. Attempts run strictly
    one after another. Raises FetchError carrying the last status or error message.
    """
    policy = policy or RetryPolicy()
    request_headers = {**NO_CACHE_HEADERS, **(headers or {})}

    retrying = AsyncRetrying(
        retry=retry_if_exception(_is_retryable),
        wait=wait_exponential(multiplier=policy.backoff_base, exp_base=2),
        stop=stop_after_attempt(policy.max_retries + 1),
        sleep=sleep,
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            return await _attempt(client, url, params, request_headers, policy.timeout)
    raise AssertionError("unreachable: tenacity reraises the last failure")


async def _attempt(
    client: httpx.AsyncClient,
    url: str,
    params: Mapping[str, Any] | None,
    headers: Mapping[str, str],
    timeout: float,
) -> httpx.Response:
    """One GET bounded end to end by `timeout`. Request-level failures become status-less FetchErrors.

    httpx applies `timeout` per socket operation; asyncio.timeout caps the whole attempt,
    so a server trickling bytes cannot keep the call alive past the budget.
    """
    try:
        async with asyncio.timeout(timeout):
            resp = await client.get(url, params=params, headers=headers, timeout=timeout)
    except (TimeoutError, httpx.TimeoutException) as e:
        raise FetchError(url, f"Timed out after {timeout:g}s") from e
    except httpx.RequestError as e:
        raise FetchError(url, f"Network error: {str(e) or type(e).__name__}") from e

    if not resp.is_success:
        raise FetchError(url, f"HTTP {resp.status_code}", status=resp.status_code)
    return resp
