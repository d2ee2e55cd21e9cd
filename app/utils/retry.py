"""
Retry policy for external channel calls.

Exponential backoff between attempts, retrying only errors the channel
reported as transient.
"""

from __future__ import annotations

from dataclasses import dataclass

from app.config import settings
from app.exceptions import TransientDeliveryError


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 0.5
    multiplier: float = 2.0
    max_delay: float = 8.0
    retry_on: tuple[type[BaseException], ...] = (TransientDeliveryError,)

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("delays cannot be negative")

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the failed ``attempt`` (1-based) before the next one."""
        return min(self.base_delay * (self.multiplier ** (attempt - 1)), self.max_delay)

    def is_retryable(self, exc: BaseException) -> bool:
        return isinstance(exc, self.retry_on)

    def should_retry(self, exc: BaseException, attempt: int) -> bool:
        return attempt < self.max_attempts and self.is_retryable(exc)

    @classmethod
    def from_settings(cls) -> RetryPolicy:
        return cls(
            max_attempts=settings.publish_max_attempts,
            base_delay=settings.publish_base_delay_seconds,
            multiplier=settings.publish_backoff_multiplier,
            max_delay=settings.publish_max_delay_seconds,
        )
