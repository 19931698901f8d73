"""HTTP utilities providing bounded retry/backoff semantics."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

import httpx

logger = logging.getLogger(__name__)


class RetryConfig:
    def __init__(self, *, attempts: int = 3, backoff_seconds: float = 1.0) -> None:
        if attempts < 1:
            raise ValueError("attempts must be at least 1")
        self.attempts = attempts
        self.backoff_seconds = backoff_seconds


def is_transient(response: httpx.Response) -> bool:
    """Server errors and throttling are worth another attempt."""
    return response.status_code >= 500 or response.status_code == 429


async def request_with_retry(
    func: Callable[..., Awaitable[httpx.Response]],
    *args,
    retry_config: RetryConfig | None = None,
    should_retry: Optional[Callable[[httpx.Response], bool]] = None,
    **kwargs,
) -> httpx.Response:
    """
    Call ``func`` until it returns a 2xx, a non-retryable response, or the
    attempt budget is spent.

    The last response is returned as-is so callers map status codes to their
    own errors. Transport errors on the final attempt are re-raised.
    """
    config = retry_config or RetryConfig()
    check = should_retry or is_transient
    attempt = 0

    while True:
        attempt += 1
        try:
            response = await func(*args, **kwargs)
        except httpx.TransportError as exc:
            if attempt >= config.attempts:
                raise
            logger.warning("Transport error on attempt %s: %s", attempt, exc)
        else:
            if response.is_success or attempt >= config.attempts or not check(response):
                return response
            logger.warning(
                "Retrying after HTTP %s on attempt %s", response.status_code, attempt
            )
        await asyncio.sleep(config.backoff_seconds * attempt)


__all__ = ["RetryConfig", "is_transient", "request_with_retry"]
