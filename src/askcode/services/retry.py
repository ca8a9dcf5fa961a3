"""Exponential backoff for rate-limited provider calls.

``RetryPolicy`` knows nothing about HTTP or streaming: it retries an async
operation while a predicate says the failure is transient, sleeping
``initial_delay * multiplier ** n`` seconds between attempts.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterator, Optional, TypeVar

from ..errors import MaxRetriesExceededError, RateLimitError


LOG = logging.getLogger("askcode.llm")

T = TypeVar("T")


def is_rate_limited(exc: BaseException) -> bool:
    return isinstance(exc, RateLimitError)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 5
    initial_delay: float = 2.0
    multiplier: float = 2.0
    retry_on: Callable[[BaseException], bool] = is_rate_limited
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    on_retry: Optional[Callable[[int, float, BaseException], None]] = None

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")

    def delays(self) -> Iterator[float]:
        """Yield the waits between consecutive attempts (``max_attempts - 1`` values)."""

        delay = self.initial_delay
        for _ in range(self.max_attempts - 1):
            yield delay
            delay *= self.multiplier

    async def call(self, operation: Callable[[], Awaitable[T]]) -> T:
        delays = self.delays()
        attempt = 0
        while True:
            attempt += 1
            try:
                return await operation()
            except Exception as exc:
                if not self.retry_on(exc):
                    raise
                delay = next(delays, None)
                if delay is None:
                    LOG.warning("retry_budget_exhausted", extra={"attempts": attempt, "err": str(exc)})
                    raise MaxRetriesExceededError(attempt) from exc
                LOG.warning(
                    "Rate limit hit. Retrying in %sms...",
                    int(delay * 1000),
                    extra={"attempt": attempt, "delay_s": delay},
                )
                if self.on_retry is not None:
                    self.on_retry(attempt, delay, exc)
                await self.sleep(delay)
