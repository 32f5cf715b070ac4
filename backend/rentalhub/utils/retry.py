"""
Retry-with-backoff policy for persistence calls.

Mirrors the host application's retry loop: a small number of attempts,
starting at one second and doubling after every failure.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, Tuple, Type, TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError

from rentalhub.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_transient_db_error(exc: BaseException) -> bool:
    """True for errors that a fresh attempt may not hit again."""
    if isinstance(exc, OperationalError):
        return True
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True
    return False


@dataclass(frozen=True)
class RetryPolicy:
    attempts: int = 3
    backoff_seconds: float = 1.0
    max_backoff_seconds: float = 8.0
    retry_on: Tuple[Type[BaseException], ...] = (DBAPIError,)

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            attempts=settings.persistence_retry_attempts,
            backoff_seconds=settings.persistence_retry_backoff_seconds,
            max_backoff_seconds=settings.persistence_retry_backoff_max_seconds,
        )

    def delay_for(self, attempt: int) -> float:
        """Backoff before retrying after the given (1-based) failed attempt."""
        delay = self.backoff_seconds * (2 ** (attempt - 1))
        return min(delay, self.max_backoff_seconds)

    def should_retry(self, exc: BaseException) -> bool:
        if not isinstance(exc, self.retry_on):
            return False
        if isinstance(exc, DBAPIError):
            return is_transient_db_error(exc)
        return True


def call_with_retry(
    operation: Callable[[], T],
    *,
    policy: Optional[RetryPolicy] = None,
    description: Optional[str] = None,
    on_retry: Optional[Callable[[BaseException], None]] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run ``operation`` and retry transient failures with doubling backoff.

    The last error is re-raised once the attempts are exhausted; errors the
    policy does not consider transient propagate immediately.
    """
    policy = policy or RetryPolicy.from_settings()
    name = description or getattr(operation, "__name__", "operation")

    attempt = 1
    while True:
        try:
            return operation()
        except Exception as exc:
            if attempt >= policy.attempts or not policy.should_retry(exc):
                raise
            delay = policy.delay_for(attempt)
            logger.warning(
                "%s failed (attempt %s/%s): %s; retrying in %.2fs",
                name,
                attempt,
                policy.attempts,
                exc,
                delay,
            )
            if on_retry:
                on_retry(exc)
            sleep(delay)
            attempt += 1
