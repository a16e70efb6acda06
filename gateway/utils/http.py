"""HTTP utilities providing retry/backoff semantics for idempotent reads."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, FrozenSet

import httpx

logger = logging.getLogger(__name__)

RETRYABLE_STATUSES: FrozenSet[int] = frozenset({429, 500, 502, 503, 504})


class RetryConfig:
    """How often and how patiently a read against the commerce API is repeated."""

    def __init__(
        self,
        *,
        attempts: int = 3,
        backoff_seconds: float = 1.0,
        max_backoff_seconds: float = 10.0,
        retry_statuses: FrozenSet[int] = RETRYABLE_STATUSES,
    ) -> None:
        if attempts < 1:
            raise ValueError("attempts must be at least 1")
        self.attempts = attempts
        self.backoff_seconds = backoff_seconds
        self.max_backoff_seconds = max_backoff_seconds
        self.retry_statuses = retry_statuses

    def delay_for(self, attempt: int) -> float:
        return min(self.backoff_seconds * attempt, self.max_backoff_seconds)

    def should_retry(self, exc: httpx.HTTPError) -> bool:
        if isinstance(exc, httpx.HTTPStatusError):
            return exc.response.status_code in self.retry_statuses
        return isinstance(exc, httpx.TransportError)


async def request_with_retry(
    func: Callable[..., Awaitable[httpx.Response]],
    *args: Any,
    retry_config: RetryConfig | None = None,
    **kwargs: Any,
) -> httpx.Response:
    """Await ``func`` until it yields a 2xx response or the attempts are spent.

    Only transport failures and the configured statuses are repeated; any other
    ``httpx.HTTPError`` propagates from the first attempt.
    """
    config = retry_config or RetryConfig()

    for attempt in range(1, config.attempts + 1):
        try:
            response = await func(*args, **kwargs)
            return response.raise_for_status()
        except httpx.HTTPError as exc:
            if attempt == config.attempts or not config.should_retry(exc):
                raise
            delay = config.delay_for(attempt)
            logger.warning(
                "Retrying request after %s (attempt %s/%s, sleeping %.1fs)",
                type(exc).__name__,
                attempt,
                config.attempts,
                delay,
            )
            await asyncio.sleep(delay)

    raise RuntimeError("Retry loop exited without a response")


__all__ = ["RETRYABLE_STATUSES", "RetryConfig", "request_with_retry"]
