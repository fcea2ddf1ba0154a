"""
Backoff policy for the Client-Side Retry Executor.
"""

from dataclasses import dataclass

from ...config import settings


@dataclass
class RetryConfig:
    """Configuration for retry behavior.

    Attempts are numbered from 1; the wait after attempt ``n`` is
    ``initial_delay_seconds * exponential_base ** (n - 1)``.
    """

    max_attempts: int = 5
    initial_delay_seconds: float = 1.0
    exponential_base: float = 2.0

    @classmethod
    def from_settings(cls) -> "RetryConfig":
        return cls(
            max_attempts=settings.retry_max_attempts,
            initial_delay_seconds=settings.retry_base_delay_seconds,
        )

    def get_delay(self, attempt: int) -> float:
        """Calculate the wait after a failed attempt."""
        return self.initial_delay_seconds * (self.exponential_base ** (attempt - 1))
