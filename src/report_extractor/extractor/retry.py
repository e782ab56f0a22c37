"""Attempt execution with a per-call timeout and tenacity-driven retry.

Every remote extraction call goes through :func:`run_with_retry`:

- Each attempt runs the client call in a short-lived worker thread and waits
  at most ``timeout_ms``. A late call is abandoned client-side (the thread is
  left to finish, bounded by the client's own request timeout) and the
  attempt fails with ExtractionTimeoutError.
- Failed attempts are retried with exponential backoff of 1s, 2s, 4s, capped
  at 5s, unless :func:`is_retryable` says the error will not change on retry.
- Sleeping goes through an injected function so tests can record delays
  instead of waiting.
"""

from __future__ import annotations

import contextvars
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable, TypeVar

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from report_extractor.errors import ExtractionTimeoutError, is_retryable

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFn = Callable[[float], None]

MAX_BACKOFF_SECONDS = 5


def call_with_timeout(fn: Callable[[], T], timeout_ms: int, operation: str) -> T:
    """Run *fn* in a worker thread, giving up after *timeout_ms*.

    Raises:
        ExtractionTimeoutError: If *fn* has not returned in time.
    """
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="extract-call")
    # Worker logs keep the caller's document context
    future = executor.submit(contextvars.copy_context().run, fn)
    try:
        return future.result(timeout=timeout_ms / 1000)
    except FutureTimeoutError:
        raise ExtractionTimeoutError(timeout_ms, operation) from None
    finally:
        # Never block on an abandoned call
        executor.shutdown(wait=False, cancel_futures=True)


def run_with_retry(
    attempt_fn: Callable[[], T],
    retries: int,
    operation: str,
    sleep: SleepFn = time.sleep,
    log: logging.Logger | None = None,
) -> T:
    """Call *attempt_fn* up to ``retries + 1`` times.

    Args:
        attempt_fn: One complete attempt; raises on failure.
        retries: Additional attempts after the first.
        operation: Label used in log messages.
        sleep: Backoff sleep function (seconds).
        log: Logger for attempt and backoff messages.

    Returns:
        The first successful attempt's return value.

    Raises:
        The last attempt's exception once attempts are exhausted, or the first
        non-retryable exception immediately.
    """
    log = log or logger
    max_attempts = max(0, retries) + 1

    retryer = Retrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=1, max=MAX_BACKOFF_SECONDS),
        retry=retry_if_exception(is_retryable),
        sleep=sleep,
        before_sleep=before_sleep_log(log, logging.WARNING),
        reraise=True,
    )

    for attempt in retryer:
        with attempt:
            log.debug(
                "%s attempt %d/%d",
                operation,
                attempt.retry_state.attempt_number,
                max_attempts,
            )
            value = attempt_fn()
    return value
