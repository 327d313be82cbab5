"""Retry helper with linear backoff."""

from __future__ import annotations

import time
from typing import Callable, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def with_retry(
    operation: Callable[[], T],
    max_retries: int = 3,
    delay: float = 1.0,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run operation, retrying on failure.

    Sleeps delay * attempt seconds between attempts. The last error is
    re-raised once max_retries attempts have failed.

    Args:
        operation: Zero-argument callable to run.
        max_retries: Total number of attempts.
        delay: Base delay in seconds.
        retry_on: Exception types that trigger a retry. Anything else
            propagates immediately.
        sleep: Sleep function (injectable for tests).

    Returns:
        The operation's return value.

    Raises:
        ValueError: If max_retries is less than 1
    """
    if max_retries < 1:
        raise ValueError(f"max_retries must be at least 1, got {max_retries}")

    attempt = 1
    while True:
        try:
            return operation()
        except retry_on as e:
            if attempt >= max_retries:
                raise
            logger.warning(
                "retry.attempt_failed",
                attempt=attempt,
                max_retries=max_retries,
                error=str(e),
            )
            sleep(delay * attempt)
            attempt += 1
