"""FastAPI application exposing the GitHub webhook endpoint.

Status codes returned to GitHub only say whether the delivery was
received: 401 for a bad signature, 400 for an undecodable payload of a
handled event type, 200 for everything else, including events that end
up filtered out.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from fastapi import FastAPI, Header, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from gh_chat_bridge._version import __version__
from gh_chat_bridge.config.schema import BridgeConfig
from gh_chat_bridge.core.pipeline import EventPipeline
from gh_chat_bridge.models.event import InboundEvent
from gh_chat_bridge.models.routing import Acceptance
from gh_chat_bridge.utils.logging import LogEventNames, bind_context, unbind_context
from gh_chat_bridge.utils.metrics import MetricsRegistry, get_metrics

log = structlog.get_logger()

_RESPONSES: dict[Acceptance, tuple[int, dict[str, Any]]] = {
    Acceptance.ACCEPTED: (200, {"status": "accepted"}),
    Acceptance.REJECTED_UNAUTHORIZED: (401, {"status": "unauthorized"}),
    Acceptance.REJECTED_MALFORMED: (400, {"status": "malformed payload"}),
}


def create_app(
    config: BridgeConfig,
    pipeline: EventPipeline | None = None,
    metrics: MetricsRegistry | None = None,
) -> FastAPI:
    """Build the ASGI application.

    Args:
        config: Application configuration
        pipeline: Event pipeline (built from config with the configured sink
            when omitted)
        metrics: Metrics registry served at ``/metrics``

    Returns:
        Configured FastAPI application
    """
    metrics = metrics or get_metrics()

    if pipeline is None:
        from gh_chat_bridge.adapters.sink import create_sink
        from gh_chat_bridge.core.dispatcher import Dispatcher

        dispatcher = Dispatcher.from_config(create_sink(config.chat), config.dispatch, metrics)
        pipeline = EventPipeline(config, dispatcher, metrics=metrics)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        log.info(LogEventNames.BRIDGE_STARTED, webhook_path=config.server.webhook_path)
        yield
        log.info(LogEventNames.BRIDGE_STOPPING, in_flight=pipeline.in_flight)
        await pipeline.drain(config.runtime.shutdown_timeout)
        try:
            await pipeline.dispatcher.sink.close()
            log.info(LogEventNames.SINK_CLOSED)
        except Exception as e:
            log.warning("sink_close_error", error=str(e))
        log.info(LogEventNames.BRIDGE_STOPPED)

    app = FastAPI(
        title="gh-chat-bridge",
        description="Forwards GitHub webhook events to chat channels",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.pipeline = pipeline
    app.state.metrics = metrics

    @app.post(config.server.webhook_path)
    async def github_webhook(
        request: Request,
        x_hub_signature_256: str | None = Header(default=None),
        x_github_event: str | None = Header(default=None),
        x_github_delivery: str | None = Header(default=None),
    ) -> JSONResponse:
        """Receive one GitHub webhook delivery."""
        body = await request.body()
        bind_context(delivery_id=x_github_delivery, event_type=x_github_event)
        try:
            log.info(LogEventNames.WEBHOOK_RECEIVED, size=len(body))
            acceptance = pipeline.handle(
                InboundEvent(
                    body=body,
                    signature=x_hub_signature_256,
                    event_type=x_github_event,
                    delivery_id=x_github_delivery,
                )
            )
            if acceptance is Acceptance.ACCEPTED:
                log.info(LogEventNames.WEBHOOK_ACCEPTED)
        finally:
            unbind_context("delivery_id", "event_type")

        status_code, content = _RESPONSES[acceptance]
        return JSONResponse(status_code=status_code, content=content)

    @app.get("/health")
    async def health() -> dict[str, Any]:
        """Liveness endpoint."""
        return {"status": "ok", "version": __version__, "in_flight": pipeline.in_flight}

    @app.get("/metrics", response_class=PlainTextResponse)
    async def metrics_endpoint() -> PlainTextResponse:
        """Prometheus metrics endpoint."""
        return PlainTextResponse(
            metrics.to_prometheus_format(),
            media_type="text/plain; version=0.0.4",
        )

    return app
