"""Tests for outbound delivery with retry."""

from __future__ import annotations

from unittest.mock import AsyncMock, call

from conftest import RecordingSink

from gh_chat_bridge.config.schema import DispatchConfig
from gh_chat_bridge.core.dispatcher import Dispatcher
from gh_chat_bridge.models.routing import Delivered, Failed, Route, RoutingDecision, Rule
from gh_chat_bridge.utils.async_helpers import PermanentDeliveryError, TransientDeliveryError
from gh_chat_bridge.utils.metrics import MetricsRegistry


def transient(count: int, retry_after: float | None = None) -> list[Exception]:
    return [TransientDeliveryError("service unavailable", retry_after) for _ in range(count)]


class TestDeliver:
    """Tests for Dispatcher.deliver."""

    async def test_first_attempt_succeeds(
        self, dispatcher: Dispatcher, sink: RecordingSink, no_sleep: AsyncMock
    ) -> None:
        result = await dispatcher.deliver("activity", "hello")

        assert result == Delivered("activity", attempts=1)
        assert sink.posts == [("activity", "hello")]
        no_sleep.assert_not_awaited()

    async def test_transient_failures_are_retried_with_backoff(
        self,
        dispatcher: Dispatcher,
        sink: RecordingSink,
        no_sleep: AsyncMock,
        metrics: MetricsRegistry,
    ) -> None:
        sink.failures["activity"] = transient(2)

        result = await dispatcher.deliver("activity", "hello")

        assert result == Delivered("activity", attempts=3)
        assert sink.posts == [("activity", "hello")]
        assert no_sleep.await_args_list == [call(1.0), call(2.0)]
        assert metrics.delivery_retries.total() == 2
        assert metrics.deliveries.get({"outcome": "delivered"}) == 1

    async def test_permanent_failure_is_not_retried(
        self,
        dispatcher: Dispatcher,
        sink: RecordingSink,
        no_sleep: AsyncMock,
        metrics: MetricsRegistry,
    ) -> None:
        sink.failures["activity"] = [PermanentDeliveryError("channel_not_found")]

        result = await dispatcher.deliver("activity", "hello")

        assert isinstance(result, Failed)
        assert result.attempts == 1
        assert "channel_not_found" in result.reason
        assert sink.attempts == ["activity"]
        no_sleep.assert_not_awaited()
        assert metrics.deliveries_failed.get({"channel": "activity"}) == 1

    async def test_retries_exhausted(
        self, sink: RecordingSink, no_sleep: AsyncMock, metrics: MetricsRegistry
    ) -> None:
        dispatcher = Dispatcher(sink, max_retries=2, metrics=metrics, sleep=no_sleep)
        sink.failures["activity"] = transient(10)

        result = await dispatcher.deliver("activity", "hello")

        assert isinstance(result, Failed)
        assert result.attempts == 3
        assert len(sink.attempts) == 3
        assert no_sleep.await_count == 2
        assert metrics.deliveries.get({"outcome": "failed"}) == 1

    async def test_zero_retries_means_single_attempt(
        self, sink: RecordingSink, no_sleep: AsyncMock, metrics: MetricsRegistry
    ) -> None:
        dispatcher = Dispatcher(sink, max_retries=0, metrics=metrics, sleep=no_sleep)
        sink.failures["activity"] = transient(1)

        result = await dispatcher.deliver("activity", "hello")

        assert isinstance(result, Failed)
        assert len(sink.attempts) == 1

    async def test_backoff_is_capped(
        self, sink: RecordingSink, no_sleep: AsyncMock, metrics: MetricsRegistry
    ) -> None:
        dispatcher = Dispatcher(
            sink,
            max_retries=3,
            backoff_base=10.0,
            max_backoff=15.0,
            metrics=metrics,
            sleep=no_sleep,
        )
        sink.failures["activity"] = transient(3)

        await dispatcher.deliver("activity", "hello")

        assert no_sleep.await_args_list == [call(10.0), call(15.0), call(15.0)]

    async def test_retry_after_hint_is_honored(
        self, dispatcher: Dispatcher, sink: RecordingSink, no_sleep: AsyncMock
    ) -> None:
        sink.failures["activity"] = transient(1, retry_after=7) + transient(1, retry_after=500)

        result = await dispatcher.deliver("activity", "hello")

        assert result == Delivered("activity", attempts=3)
        # The second hint is capped at max_backoff
        assert no_sleep.await_args_list == [call(7.0), call(30.0)]

    async def test_attempt_timeout_is_transient(
        self, no_sleep: AsyncMock, metrics: MetricsRegistry
    ) -> None:
        slow_sink = RecordingSink(delay=5.0)
        dispatcher = Dispatcher(
            slow_sink, max_retries=1, attempt_timeout=0.01, metrics=metrics, sleep=no_sleep
        )

        result = await dispatcher.deliver("activity", "hello")

        assert isinstance(result, Failed)
        assert result.attempts == 2
        assert "timed out" in result.reason
        assert slow_sink.posts == []

    async def test_unexpected_error_becomes_failed(
        self, dispatcher: Dispatcher, sink: RecordingSink, no_sleep: AsyncMock
    ) -> None:
        sink.failures["activity"] = [RuntimeError("boom")]

        result = await dispatcher.deliver("activity", "hello")

        assert isinstance(result, Failed)
        assert "boom" in result.reason
        no_sleep.assert_not_awaited()


class TestDeliverAll:
    """Tests for Dispatcher.deliver_all."""

    async def test_empty_decision(self, dispatcher: Dispatcher, sink: RecordingSink) -> None:
        assert await dispatcher.deliver_all(RoutingDecision()) == []
        assert sink.attempts == []

    async def test_failures_are_independent(
        self, dispatcher: Dispatcher, sink: RecordingSink
    ) -> None:
        sink.failures["good-first-issues"] = [PermanentDeliveryError("not_in_channel")]
        decision = RoutingDecision(
            (
                Route("activity", "activity message", Rule.HUMAN_ACTIVITY),
                Route("good-first-issues", "alert message", Rule.GOOD_FIRST_ISSUE),
            )
        )

        results = await dispatcher.deliver_all(decision)

        assert isinstance(results[0], Delivered)
        assert isinstance(results[1], Failed)
        assert sink.posts == [("activity", "activity message")]


def test_from_config(sink: RecordingSink, metrics: MetricsRegistry) -> None:
    dispatcher = Dispatcher.from_config(sink, DispatchConfig(max_retries=5), metrics)
    assert dispatcher.sink is sink
