"""
Shared upstream call helpers: timeouts and transient-error retry.

Both the ledger reader and the store client go through ``run_with_retry`` so
retry and backoff behave the same for every upstream.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import httpx

from tilemarket.config import settings
from tilemarket.logging import get_logger

logger = get_logger('services.transport')
_T = TypeVar("_T")

_TRANSIENT_TOKENS = (
    "timed out",
    "timeout",
    "rate limit",
    "too many requests",
    "temporarily unavailable",
    "connection reset",
    "connection aborted",
    "connection refused",
    "bad gateway",
    "service unavailable",
    "gateway timeout",
    "429",
    "502",
    "503",
    "504",
)


def is_transient_error(error: Exception) -> bool:
    if isinstance(error, (TimeoutError, asyncio.TimeoutError, httpx.TimeoutException, httpx.NetworkError)):
        return True
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code in (429, 502, 503, 504)

    message = str(error).lower()
    return any(token in message for token in _TRANSIENT_TOKENS)


async def with_timeout(operation: Awaitable[_T], timeout: float | None = None) -> _T:
    """Await ``operation`` under the configured request timeout."""
    seconds = settings.REQUEST_TIMEOUT_SECONDS if timeout is None else timeout
    if seconds and seconds > 0:
        return await asyncio.wait_for(operation, timeout=seconds)
    return await operation


async def run_with_retry(
    operation_name: str,
    operation: Callable[[], Awaitable[_T]],
    *,
    max_retries: int | None = None,
) -> _T:
    """
    Run ``operation`` retrying transient failures with capped exponential backoff.

    :param operation_name: Label used in log records
    :param operation: Zero-argument coroutine factory, called once per attempt
    :param max_retries: Overrides UPSTREAM_MAX_RETRIES when given
    :return: The operation's result
    :raises Exception: The last error once retries are exhausted or the error is not transient
    """
    retries = settings.UPSTREAM_MAX_RETRIES if max_retries is None else max_retries
    total_attempts = max(int(retries), 0) + 1
    base_delay = max(float(settings.UPSTREAM_RETRY_BASE_SECONDS), 0.0)
    max_delay = max(float(settings.UPSTREAM_RETRY_MAX_SECONDS), base_delay)

    attempt = 1
    while True:
        try:
            return await operation()
        except Exception as error:
            should_retry = attempt < total_attempts and is_transient_error(error)
            if not should_retry:
                raise

            delay = min(base_delay * (2 ** (attempt - 1)), max_delay)
            logger.warning(
                "Upstream %s failed (attempt %d/%d): %s. Retrying in %.2fs",
                operation_name,
                attempt,
                total_attempts,
                error,
                delay,
            )
            if delay > 0:
                await asyncio.sleep(delay)
            attempt += 1
