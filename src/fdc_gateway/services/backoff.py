"""Retry decisions and jittered exponential backoff."""

import random
from collections.abc import Callable
from dataclasses import dataclass, field

from fdc_gateway.domain.errors import UpstreamError

DEFAULT_MAX_RETRIES = 2
DEFAULT_RETRY_DELAY_MS = 750


def should_retry(error: BaseException, attempt_index: int, max_retries: int) -> bool:
    """Return True when a failed attempt may be retried."""
    if attempt_index >= max_retries:
        return False
    if isinstance(error, UpstreamError):
        return error.retryable
    return False


def compute_delay(
    base_delay_ms: int,
    attempt_index: int,
    rand: Callable[[], float] = random.random,
) -> int:
    """Return ``base * 2**attempt`` scaled by a jitter factor in [0.5, 1.5)."""
    base = base_delay_ms * (2**attempt_index)
    jitter = 0.5 + rand()
    return round(base * jitter)


@dataclass(frozen=True)
class RetryPolicy:
    """Retry budget shared by every call through one client."""

    max_retries: int = DEFAULT_MAX_RETRIES
    base_delay_ms: int = DEFAULT_RETRY_DELAY_MS
    rand: Callable[[], float] = field(default=random.random, repr=False)

    def should_retry(self, error: BaseException, attempt_index: int) -> bool:
        return should_retry(error, attempt_index, self.max_retries)

    def compute_delay(self, attempt_index: int) -> int:
        return compute_delay(self.base_delay_ms, attempt_index, self.rand)
