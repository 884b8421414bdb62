"""Per-event orchestration of the webhook pipeline.

The pipeline has two halves:

1. ``handle`` runs inside the HTTP request: verify the signature, parse
   the body, and answer. Rejected requests never reach the parser (bad
   signature) or the router (bad payload).
2. ``process`` runs as a background task that is not tied to the request:
   dedup, classify, route, deliver. A client disconnecting after
   acceptance does not interrupt it.

Any unexpected error in ``process`` is caught at the event boundary,
logged and counted; it never propagates to the server.

The good-first-issue alert key is recorded before delivery and is never
removed when that delivery fails. Alerts are therefore at-most-once per
retention window: a lost alert shows up as ``delivery_failed`` in the
logs and in ``deliveries_failed_total``, but a redelivery of the same
label event will not post it again.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog

from gh_chat_bridge.core.classifier import ActorClassifier
from gh_chat_bridge.core.dedup import DedupResult, DedupStore
from gh_chat_bridge.core.dispatcher import Dispatcher
from gh_chat_bridge.core.parser import HANDLED_EVENT_TYPES, parse_event
from gh_chat_bridge.core.router import Router
from gh_chat_bridge.core.signature import SignatureStatus, verify_signature
from gh_chat_bridge.models.event import (
    EventKind,
    InboundEvent,
    IssueUnlabeled,
    ParsedEvent,
)
from gh_chat_bridge.models.routing import Acceptance, ProcessingOutcome
from gh_chat_bridge.utils.async_helpers import MalformedPayloadError
from gh_chat_bridge.utils.logging import LogEventNames
from gh_chat_bridge.utils.metrics import MetricsRegistry, Timer, get_metrics

if TYPE_CHECKING:
    from gh_chat_bridge.config.schema import BridgeConfig

log = structlog.get_logger()


def _event_type_label(event_type: str | None) -> str:
    """Metric label for an unauthenticated header: handled types or ``other``."""
    normalized = (event_type or "").strip().lower()
    return normalized if normalized in HANDLED_EVENT_TYPES else "other"


class EventPipeline:
    """Coordinates verification, parsing, routing and delivery.

    Concurrency: every accepted event becomes its own task; an
    ``asyncio.Semaphore`` bounds how many are routed and delivered at
    once. The dedup store is the only state shared between tasks.

    Example:
        pipeline = EventPipeline(config, dispatcher)
        acceptance = pipeline.handle(inbound)   # inside the request
        ...
        await pipeline.drain()                   # on shutdown
    """

    def __init__(
        self,
        config: BridgeConfig,
        dispatcher: Dispatcher,
        dedup_store: DedupStore | None = None,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            config: Application configuration
            dispatcher: Outbound delivery
            dedup_store: Alert dedup store (built from config when omitted)
            metrics: Metrics registry (defaults to the global one)
        """
        self._config = config
        self._dispatcher = dispatcher
        self._metrics = metrics or get_metrics()

        self._classifier = ActorClassifier(
            allow_list=config.github.human_allow_list,
            deny_list=config.github.automation_deny_list,
        )
        self._router = Router(
            activity_channel_id=config.routing.activity_channel_id,
            good_first_issue_channel_id=config.routing.good_first_issue_channel_id,
            target_label=config.github.target_label,
        )
        self._dedup = dedup_store or DedupStore(
            retention=config.dedup.retention_window,
            capacity=config.dedup.capacity,
        )

        self._semaphore = asyncio.Semaphore(config.runtime.max_concurrent)
        self._active_tasks: set[asyncio.Task[ProcessingOutcome]] = set()

    @property
    def dedup_store(self) -> DedupStore:
        return self._dedup

    @property
    def dispatcher(self) -> Dispatcher:
        return self._dispatcher

    @property
    def in_flight(self) -> int:
        return len(self._active_tasks)

    # =========================================================================
    # Request half
    # =========================================================================

    def accept(self, inbound: InboundEvent) -> tuple[Acceptance, ParsedEvent | None]:
        """Verify and parse an inbound request without scheduling anything."""
        self._metrics.events_received.inc(
            labels={"event_type": _event_type_label(inbound.event_type)}
        )

        status = verify_signature(
            inbound.body, inbound.signature, self._config.github.signing_secret
        )
        if status is not SignatureStatus.VALID:
            self._metrics.events_rejected.inc(labels={"reason": "unauthorized"})
            log.warning(LogEventNames.WEBHOOK_UNAUTHORIZED, delivery_id=inbound.delivery_id)
            return Acceptance.REJECTED_UNAUTHORIZED, None

        try:
            event = parse_event(
                inbound.body,
                inbound.event_type,
                inbound.delivery_id,
                received_at=datetime.now(UTC),
            )
        except MalformedPayloadError as e:
            self._metrics.events_rejected.inc(labels={"reason": "malformed"})
            log.warning(
                LogEventNames.WEBHOOK_MALFORMED,
                delivery_id=inbound.delivery_id,
                event_type=inbound.event_type,
                error=str(e),
            )
            return Acceptance.REJECTED_MALFORMED, None

        self._metrics.events_parsed.inc(labels={"kind": event.kind.value})
        log.debug(
            LogEventNames.EVENT_PARSED,
            delivery_id=event.delivery_id,
            kind=event.kind.value,
            repository=event.repository,
        )
        return Acceptance.ACCEPTED, event

    def handle(self, inbound: InboundEvent) -> Acceptance:
        """Verify and parse a request, then schedule it for processing.

        Must be called from within a running event loop.
        """
        acceptance, event = self.accept(inbound)
        if event is not None:
            self.submit(event)
        return acceptance

    def submit(self, event: ParsedEvent) -> asyncio.Task[ProcessingOutcome]:
        """Schedule an event for background processing."""
        task = asyncio.create_task(
            self._run(event),
            name=f"process_{event.delivery_id or event.kind.value}",
        )
        self._active_tasks.add(task)
        task.add_done_callback(self._active_tasks.discard)
        return task

    async def _run(self, event: ParsedEvent) -> ProcessingOutcome:
        async with self._semaphore:
            self._metrics.in_flight.inc()
            try:
                with Timer(self._metrics.processing_duration):
                    return await self.process(event)
            finally:
                self._metrics.in_flight.dec()

    # =========================================================================
    # Processing half
    # =========================================================================

    async def process(self, event: ParsedEvent) -> ProcessingOutcome:
        """Route and deliver a parsed event.

        Never raises (except on cancellation): unexpected errors are logged
        and reported in the returned outcome.
        """
        log_ctx = {
            "delivery_id": event.delivery_id,
            "kind": event.kind.value,
            "repository": event.repository,
        }

        if event.kind is EventKind.OTHER:
            log.debug(LogEventNames.EVENT_IGNORED, **log_ctx)
            self._metrics.events_filtered.inc(labels={"reason": "unhandled"})
            return ProcessingOutcome(event_kind=event.kind)

        try:
            alert_key = self._router.alert_key(event)
            alert_status = self._dedup.check_and_record(alert_key) if alert_key else None
            if alert_status is DedupResult.DUPLICATE_WITHIN_WINDOW:
                self._metrics.alerts_suppressed.inc()
                log.info(LogEventNames.ALERT_SUPPRESSED, **log_ctx)
            if isinstance(event, IssueUnlabeled) and self._router.matches_target_label(
                event.label
            ):
                log.info(LogEventNames.LABEL_REMOVED, label=event.label, **log_ctx)

            classification = self._classifier.classify(event.actor)
            log.debug(
                LogEventNames.EVENT_CLASSIFIED,
                actor=event.actor.login,
                declared_type=event.actor.declared_type.value,
                classification=classification.value,
                **log_ctx,
            )

            decision = self._router.route(event, classification, alert_status)
            if not decision:
                self._metrics.events_filtered.inc(labels={"reason": "no_route"})
                log.info(
                    LogEventNames.EVENT_FILTERED,
                    classification=classification.value,
                    **log_ctx,
                )
                return ProcessingOutcome(event_kind=event.kind, classification=classification)

            for route in decision.routes:
                self._metrics.routes_emitted.inc(labels={"rule": route.rule.value})
            log.info(
                LogEventNames.EVENT_ROUTED,
                channels=sorted(decision.channels),
                rules=[route.rule.value for route in decision.routes],
                **log_ctx,
            )

            results = await self._dispatcher.deliver_all(decision)
            return ProcessingOutcome(
                event_kind=event.kind,
                classification=classification,
                decision=decision,
                results=tuple(results),
            )

        except Exception as e:
            self._metrics.pipeline_errors.inc()
            log.exception(LogEventNames.EVENT_PROCESSING_ERROR, error=str(e), **log_ctx)
            return ProcessingOutcome(event_kind=event.kind, error=str(e))

    # =========================================================================
    # Shutdown
    # =========================================================================

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for in-flight events, cancelling stragglers after ``timeout``."""
        if not self._active_tasks:
            return

        if timeout is None:
            timeout = self._config.runtime.shutdown_timeout

        tasks = set(self._active_tasks)
        log.info("waiting_for_active_tasks", count=len(tasks))

        done, pending = await asyncio.wait(tasks, timeout=timeout)
        if pending:
            log.warning("cancelling_pending_tasks", count=len(pending))
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        log.info("tasks_completed", completed=len(done), cancelled=len(pending))
