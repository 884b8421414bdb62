"""Async utility functions for resilient outbound delivery.

This module provides:
- The bridge exception hierarchy
- Retry policies with exponential backoff
- Timeout wrappers for async operations
"""

from __future__ import annotations

import asyncio
import builtins
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

log = structlog.get_logger()

T = TypeVar("T")


# =============================================================================
# Custom Exceptions
# =============================================================================


class BridgeError(Exception):
    """Base exception for all bridge errors."""


class MalformedPayloadError(BridgeError):
    """A payload for a known event type could not be decoded.

    Attributes:
        event_type: The X-GitHub-Event header value of the payload.
    """

    def __init__(self, message: str, event_type: str | None = None) -> None:
        super().__init__(message)
        self.event_type = event_type


class DeliveryError(BridgeError):
    """Posting a message to a chat channel failed."""


class TransientDeliveryError(DeliveryError):
    """Delivery failed for a reason that may clear up on retry.

    Attributes:
        retry_after: Number of seconds the platform asked us to wait, if known.
    """

    def __init__(self, message: str, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class PermanentDeliveryError(DeliveryError):
    """Delivery failed and retrying will not help (bad channel, bad token)."""


class TimeoutError(BridgeError):
    """Operation timed out."""


# =============================================================================
# Retry Policy
# =============================================================================


def _log_retry(retry_state: RetryCallState) -> None:
    """Log retry attempts for debugging."""
    if retry_state.outcome is None:
        return

    exception = retry_state.outcome.exception()
    if exception:
        log.warning(
            "retrying_operation",
            attempt=retry_state.attempt_number,
            exception_type=type(exception).__name__,
            exception_message=str(exception),
            wait_time=retry_state.next_action.sleep if retry_state.next_action else 0,
        )


class wait_retry_after(wait_base):  # noqa: N801
    """Wait as long as the failed call asked for, else fall back.

    Honors ``retry_after`` on the raised exception (see
    ``TransientDeliveryError``), capped at ``max_wait``.
    """

    def __init__(self, fallback: wait_base, max_wait: float) -> None:
        self.fallback = fallback
        self.max_wait = max_wait

    def __call__(self, retry_state: RetryCallState) -> float:
        exception = retry_state.outcome.exception() if retry_state.outcome else None
        retry_after = getattr(exception, "retry_after", None)
        if retry_after is not None:
            return min(max(float(retry_after), 0.0), self.max_wait)
        return self.fallback(retry_state)


def create_retrying(
    max_retries: int = 3,
    backoff_base: float = 1.0,
    max_backoff: float = 30.0,
    retry_on: tuple[type[BaseException], ...] = (TransientDeliveryError,),
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    before_sleep: Callable[[RetryCallState], Any] | None = None,
) -> AsyncRetrying:
    """Create an async retry controller with exponential backoff.

    The first retry waits ``backoff_base`` seconds, each further retry
    doubles the wait, capped at ``max_backoff``. A ``retry_after`` hint on
    the exception replaces the computed wait.

    Args:
        max_retries: Retries after the first attempt (attempts = max_retries + 1).
        backoff_base: Wait before the first retry (seconds).
        max_backoff: Upper bound for a single wait (seconds).
        retry_on: Exception types that trigger a retry.
        sleep: Awaitable sleep used between attempts. Must be cancellable.
        before_sleep: Hook called before each wait (defaults to logging).

    Returns:
        A configured ``tenacity.AsyncRetrying`` instance.

    Example:
        async for attempt in create_retrying(max_retries=2):
            with attempt:
                await sink.post(channel_id, text)
    """
    return AsyncRetrying(
        stop=stop_after_attempt(max_retries + 1),
        wait=wait_retry_after(
            wait_exponential(multiplier=backoff_base, min=0, max=max_backoff), max_backoff
        ),
        retry=retry_if_exception_type(retry_on),
        before_sleep=before_sleep or _log_retry,
        sleep=sleep,
        reraise=True,
    )


# =============================================================================
# Timeout Utilities
# =============================================================================


async def with_timeout(
    coro: Awaitable[T],
    timeout: float,
    error_message: str | None = None,
) -> T:
    """Execute an awaitable with a timeout.

    Args:
        coro: The coroutine to execute.
        timeout: Timeout in seconds.
        error_message: Custom error message for timeout.

    Returns:
        The result of the coroutine.

    Raises:
        TimeoutError: If the operation times out.
    """
    try:
        return await asyncio.wait_for(coro, timeout=timeout)
    except builtins.TimeoutError as e:
        msg = error_message or f"Operation timed out after {timeout}s"
        log.warning("operation_timeout", timeout=timeout)
        raise TimeoutError(msg) from e
