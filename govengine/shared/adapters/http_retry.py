from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Collection

import httpx
import structlog

from govengine.core.exceptions import ExternalAPIError

logger = structlog.get_logger()

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


def _retry_after_seconds(response: httpx.Response, fallback: float) -> float:
    header = response.headers.get("Retry-After")
    if header is None:
        return fallback
    try:
        return max(0.0, float(header))
    except ValueError:
        return fallback


async def execute_with_http_retry(
    *,
    request: Callable[[], Awaitable[httpx.Response]],
    url: str,
    max_retries: int,
    retryable_status_codes: Collection[int] = RETRYABLE_STATUS_CODES,
    error_prefix: str = "HTTP request failed",
    retry_sleep_base_seconds: float = 0.5,
    max_retry_after_seconds: float = 30.0,
) -> httpx.Response:
    """
    Execute an HTTP request coroutine with retry on throttling, 5xx and
    transport errors. Final failures raise ExternalAPIError carrying the
    status code in ``details`` when one was received.
    """
    last_error: Exception | None = None
    attempts = max(1, int(max_retries))

    for attempt in range(1, attempts + 1):
        try:
            response = await request()
            response.raise_for_status()
            return response
        except httpx.HTTPStatusError as exc:
            last_error = exc
            status_code = exc.response.status_code
            if status_code in retryable_status_codes and attempt < attempts:
                delay = min(
                    max_retry_after_seconds,
                    _retry_after_seconds(exc.response, retry_sleep_base_seconds * attempt),
                )
                logger.warning(
                    "http_retry_status",
                    attempt=attempt,
                    max_attempts=attempts,
                    status_code=status_code,
                    url=url,
                    delay_seconds=delay,
                )
                await asyncio.sleep(delay)
                continue
            raise ExternalAPIError(
                f"{error_prefix} with status {status_code}",
                details={"status_code": status_code, "url": url},
            ) from exc
        except (httpx.TimeoutException, httpx.TransportError) as exc:
            last_error = exc
            if attempt < attempts:
                logger.warning(
                    "http_retry_transport_error",
                    attempt=attempt,
                    max_attempts=attempts,
                    url=url,
                    error=str(exc),
                )
                await asyncio.sleep(retry_sleep_base_seconds * attempt)
                continue
            raise ExternalAPIError(f"{error_prefix}: {exc}", details={"url": url}) from exc

    raise ExternalAPIError(f"{error_prefix}: {last_error}", details={"url": url})
