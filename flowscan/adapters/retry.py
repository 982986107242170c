"""Retry policy, thread based timeouts and the retry loop shared by adapters."""

from __future__ import annotations

import logging
import random
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, List, Literal, TypeVar

from .base import AdapterError, TransientAdapterError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class OperationTimeoutError(TransientAdapterError):
    """Raised when an operation exceeds its timeout."""


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to try an operation and how long to wait between tries."""

    max_attempts: int = 3
    delay: float = 0.75
    backoff: Literal["linear", "exponential"] = "linear"
    factor: float = 2.0
    max_delay: float = 4.0
    jitter: float = 0.3

    def delay_for(self, attempt: int) -> float:
        """Return the base wait (without jitter) after the zero-based ``attempt`` failed."""

        if self.backoff == "exponential":
            wait = self.delay * (self.factor ** attempt)
        else:
            wait = self.delay * (1 + attempt)
        return min(self.max_delay, wait)


def run_with_timeout(func: Callable[[], T], timeout_seconds: float) -> T:
    """Run a function with a timeout using threading.

    This is more reliable than signal-based timeouts, especially in worker threads.
    """
    result_container: List[Any] = []
    exception_container: List[BaseException] = []

    def wrapper():
        try:
            result_container.append(func())
        except Exception as e:
            exception_container.append(e)

    thread = threading.Thread(target=wrapper, daemon=True)
    thread.start()
    thread.join(timeout=timeout_seconds)

    if thread.is_alive():
        raise OperationTimeoutError(f"Operation timed out after {timeout_seconds} seconds")

    if exception_container:
        raise exception_container[0]

    if result_container:
        return result_container[0]

    raise OperationTimeoutError("Operation completed but returned no result")


def call_with_retry(
    operation: Callable[[], T],
    *,
    policy: RetryPolicy,
    context: str,
    timeout_seconds: float | None = 30,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``operation`` until it succeeds or the policy is exhausted.

    ``TransientAdapterError`` failures are retried. Any other ``AdapterError`` is fatal and
    propagates immediately. When attempts run out an ``AdapterError`` naming the
    context is raised from the last failure.
    """

    attempts = max(1, policy.max_attempts)
    last_error: Exception | None = None
    for attempt in range(attempts):
        try:
            if timeout_seconds:
                return run_with_timeout(operation, timeout_seconds)
            return operation()
        except TransientAdapterError as exc:
            last_error = exc
            logger.warning(
                "Attempt %d/%d to %s failed: %s", attempt + 1, attempts, context, exc
            )
            if attempt == attempts - 1:
                break
            wait = policy.delay_for(attempt) + random.uniform(0, policy.jitter)
            sleep(wait)

    raise AdapterError(f"Failed to {context}: {last_error}") from last_error


__all__ = ["OperationTimeoutError", "RetryPolicy", "call_with_retry", "run_with_timeout"]
