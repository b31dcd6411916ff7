"""Retry policies for upstream HTTP calls."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from shudenout.utils.throttling import jitter_seconds

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


class RetryableStatusError(RuntimeError):
    """Raised by an operation when the upstream answered 429 or 5xx."""

    def __init__(self, status: int, body: str = "") -> None:
        super().__init__(f"Upstream responded with retryable status {status}")
        self.status = status
        self.body = body


@dataclass(frozen=True)
class RetryPolicy:
    """Retry count and backoff schedule consumed by :func:`retry_async`."""

    max_retries: int = 3
    base_delay_s: float = 1.0
    backoff_factor: float = 2.0
    jitter_s: Optional[Tuple[float, float]] = None

    def delay_for(self, retry_index: int) -> float:
        """Delay before retry number ``retry_index`` (0-based)."""
        if self.jitter_s is not None:
            return jitter_seconds(*self.jitter_s)
        return self.base_delay_s * (self.backoff_factor ** retry_index)


# Listing and detail calls: 1s, 2s, 4s.
LISTING_RETRY = RetryPolicy(max_retries=3, base_delay_s=1.0, backoff_factor=2.0)
# Vacancy chunks: one retry after 300-600ms.
VACANCY_RETRY = RetryPolicy(max_retries=1, jitter_s=(0.3, 0.6))


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    retry_on: Tuple[Type[BaseException], ...] = (RetryableStatusError,),
    sleep: Sleep = asyncio.sleep,
    label: str = "upstream call",
) -> T:
    """Run ``operation`` and retry it according to ``policy``.

    Exceptions outside ``retry_on`` propagate immediately; the last retryable
    exception propagates once the budget is exhausted.
    """
    attempt = 0
    while True:
        try:
            return await operation()
        except retry_on as exc:
            if attempt >= policy.max_retries:
                logger.warning("%s failed after %s retries: %s", label, attempt, exc)
                raise
            delay = policy.delay_for(attempt)
            attempt += 1
            logger.info(
                "%s failed (%s); retry %s/%s in %.2fs",
                label,
                exc,
                attempt,
                policy.max_retries,
                delay,
            )
            await sleep(delay)
