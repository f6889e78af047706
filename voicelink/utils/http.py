"""HTTP utilities providing retry/backoff semantics for platform reads."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)


class RetryConfig:
    def __init__(self, *, attempts: int = 2, backoff_seconds: float = 0.2) -> None:
        self.attempts = max(1, attempts)
        self.backoff_seconds = backoff_seconds


def _is_retryable(exc: httpx.HTTPError) -> bool:
    # Client errors are answers, not outages.
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    return isinstance(exc, httpx.TransportError)


async def request_with_retry(
    func: Callable[..., Awaitable[httpx.Response]],
    *args,
    retry_config: RetryConfig | None = None,
    **kwargs,
) -> httpx.Response:
    """Call ``func`` until it yields a successful response or attempts run out.

    Transport failures and 5xx responses are retried with linear backoff; any
    other ``httpx.HTTPError`` is raised immediately.
    """
    config = retry_config or RetryConfig()
    attempt = 0

    while True:
        try:
            response = await func(*args, **kwargs)
            response.raise_for_status()
            return response
        except httpx.HTTPError as exc:
            attempt += 1
            if attempt >= config.attempts or not _is_retryable(exc):
                raise
            logger.debug(
                "Retrying platform request after failure",
                extra={"attempt": attempt, "error": str(exc)},
            )
            await asyncio.sleep(config.backoff_seconds * attempt)


__all__ = ["RetryConfig", "request_with_retry"]
