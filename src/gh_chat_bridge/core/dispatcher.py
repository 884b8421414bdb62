"""Outbound delivery with retry and exponential backoff.

A failed delivery is never fatal: once retries are exhausted (or the
failure is permanent) it is logged, counted and returned as ``Failed`` so
the next event is processed normally. Waiting between attempts suspends
only the delivery being retried.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

import structlog
from tenacity import RetryCallState

from gh_chat_bridge.models.routing import Delivered, DeliveryResult, Failed, RoutingDecision
from gh_chat_bridge.utils.async_helpers import (
    DeliveryError,
    TimeoutError,
    TransientDeliveryError,
    create_retrying,
    with_timeout,
)
from gh_chat_bridge.utils.logging import LogEventNames
from gh_chat_bridge.utils.metrics import MetricsRegistry, get_metrics

if TYPE_CHECKING:
    from gh_chat_bridge.config.schema import DispatchConfig
    from gh_chat_bridge.interfaces.sink import ChannelSink

log = structlog.get_logger()


class Dispatcher:
    """Delivers rendered messages to channels through a ChannelSink.

    Example:
        dispatcher = Dispatcher(sink, max_retries=3, backoff_base=1.0)
        result = await dispatcher.deliver("C-ACTIVITY", "alice opened #1")
        if isinstance(result, Failed):
            ...
    """

    def __init__(
        self,
        sink: ChannelSink,
        max_retries: int = 3,
        backoff_base: float = 1.0,
        max_backoff: float = 30.0,
        attempt_timeout: float = 10.0,
        metrics: MetricsRegistry | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """Initialize the Dispatcher.

        Args:
            sink: Chat sink making single delivery attempts
            max_retries: Retries after the first attempt
            backoff_base: Wait before the first retry, doubled on each retry (seconds)
            max_backoff: Cap on a single wait (seconds)
            attempt_timeout: Timeout for one attempt (seconds)
            metrics: Metrics registry (defaults to the global one)
            sleep: Cancellable sleep used between attempts
        """
        self._sink = sink
        self._max_retries = max_retries
        self._backoff_base = backoff_base
        self._max_backoff = max_backoff
        self._attempt_timeout = attempt_timeout
        self._metrics = metrics or get_metrics()
        self._sleep = sleep

    @classmethod
    def from_config(
        cls,
        sink: ChannelSink,
        config: DispatchConfig,
        metrics: MetricsRegistry | None = None,
    ) -> Dispatcher:
        return cls(
            sink,
            max_retries=config.max_retries,
            backoff_base=config.backoff_base,
            max_backoff=config.max_backoff,
            attempt_timeout=config.attempt_timeout,
            metrics=metrics,
        )

    @property
    def sink(self) -> ChannelSink:
        return self._sink

    async def deliver(self, channel_id: str, message: str) -> DeliveryResult:
        """Deliver one message, retrying transient failures.

        Returns:
            Delivered, or Failed once retries are exhausted or the failure
            is permanent. Only cancellation propagates.
        """
        attempts = 0
        retrying = create_retrying(
            max_retries=self._max_retries,
            backoff_base=self._backoff_base,
            max_backoff=self._max_backoff,
            sleep=self._sleep,
            before_sleep=lambda state: self._before_retry(channel_id, state),
        )

        try:
            async for attempt in retrying:
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    await self._attempt(channel_id, message)
        except DeliveryError as e:
            return self._failed(channel_id, str(e), attempts, exc_info=False)
        except Exception as e:
            return self._failed(channel_id, f"unexpected error: {e}", attempts, exc_info=True)

        self._metrics.deliveries.inc(labels={"outcome": "delivered"})
        log.info(LogEventNames.DELIVERY_SUCCEEDED, channel_id=channel_id, attempts=attempts)
        return Delivered(channel_id, attempts)

    async def deliver_all(self, decision: RoutingDecision) -> list[DeliveryResult]:
        """Deliver every route of a decision concurrently."""
        if not decision:
            return []
        return list(
            await asyncio.gather(
                *(self.deliver(route.channel_id, route.message) for route in decision.routes)
            )
        )

    async def _attempt(self, channel_id: str, message: str) -> None:
        try:
            await with_timeout(
                self._sink.post(channel_id, message),
                self._attempt_timeout,
                f"Delivery to {channel_id} timed out after {self._attempt_timeout}s",
            )
        except TimeoutError as e:
            raise TransientDeliveryError(str(e)) from e

    def _before_retry(self, channel_id: str, retry_state: RetryCallState) -> None:
        exception = retry_state.outcome.exception() if retry_state.outcome else None
        self._metrics.delivery_retries.inc()
        log.warning(
            LogEventNames.DELIVERY_RETRY,
            channel_id=channel_id,
            attempt=retry_state.attempt_number,
            error=str(exception) if exception else None,
            wait_time=retry_state.next_action.sleep if retry_state.next_action else 0,
        )

    def _failed(self, channel_id: str, reason: str, attempts: int, exc_info: bool) -> Failed:
        self._metrics.deliveries.inc(labels={"outcome": "failed"})
        self._metrics.deliveries_failed.inc(labels={"channel": channel_id})
        log.error(
            LogEventNames.DELIVERY_FAILED,
            channel_id=channel_id,
            attempts=attempts,
            reason=reason,
            exc_info=exc_info,
        )
        return Failed(channel_id, reason, attempts)
