"""Bounded exponential backoff for transient failures."""

import logging
import threading
import time
from typing import Callable, Optional, TypeVar

from lxcompose.errors import OperationCancelledError, RetryableError, RetryExhaustedError
from lxcompose.models.config import RetryConfig


logger = logging.getLogger(__name__)

T = TypeVar("T")


def _sleep(delay: float, cancel: Optional[threading.Event]) -> bool:
    """Sleep for ``delay`` seconds; return True if cancelled meanwhile."""
    if cancel is None:
        time.sleep(delay)
        return False
    return cancel.wait(delay)


def retry_with_backoff(
    operation: Callable[[], T],
    config: Optional[RetryConfig] = None,
    cancel: Optional[threading.Event] = None,
    description: str = "operation",
) -> T:
    """Run ``operation`` until it succeeds or the retry budget is spent.

    Only ``RetryableError`` subclasses are retried; anything else is raised
    unchanged on the first occurrence. The cancel event is checked before
    every attempt and interrupts backoff sleeps.

    Raises:
        OperationCancelledError: the cancel event was set.
        RetryExhaustedError: attempts or elapsed time ran out. The last
            transient error is chained as its cause.
    """
    config = config or RetryConfig()
    started = time.monotonic()
    interval = config.initial_interval
    attempt = 0
    last_error: Optional[RetryableError] = None

    while True:
        if cancel is not None and cancel.is_set():
            raise OperationCancelledError(f"{description} cancelled", attempts=attempt)

        attempt += 1
        try:
            return operation()
        except RetryableError as e:
            last_error = e

        if attempt >= config.max_attempts:
            break

        delay = min(interval, config.max_interval)
        if time.monotonic() - started + delay > config.max_elapsed_time:
            break

        logger.warning(
            f"{description} failed (attempt {attempt}/{config.max_attempts}): "
            f"{last_error}; retrying in {delay:.1f}s"
        )
        if _sleep(delay, cancel):
            raise OperationCancelledError(f"{description} cancelled", attempts=attempt)
        interval *= config.multiplier

    logger.error(f"{description} failed after {attempt} attempts: {last_error}")
    raise RetryExhaustedError(
        f"{description} failed after {attempt} attempts",
        attempts=attempt,
        last_error=last_error,
    ) from last_error
