"""Utility functions and helpers.

- security: Secret redaction, input validation
- async_helpers: Exception hierarchy, retry and timeout helpers
- logging: Structured logging with secret sanitization
- metrics: Application metrics collection
"""

from gh_chat_bridge.utils.async_helpers import (
    BridgeError,
    DeliveryError,
    MalformedPayloadError,
    PermanentDeliveryError,
    TransientDeliveryError,
)
from gh_chat_bridge.utils.logging import (
    LogFormat,
    LogLevel,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    unbind_context,
)
from gh_chat_bridge.utils.metrics import (
    Counter,
    Gauge,
    Histogram,
    MetricsRegistry,
    Timer,
    get_metrics,
)
from gh_chat_bridge.utils.security import RedactionError, SecretRedactor, SecurityError

__all__ = [
    "BridgeError",
    "Counter",
    "DeliveryError",
    "Gauge",
    "Histogram",
    "LogFormat",
    "LogLevel",
    "MalformedPayloadError",
    "MetricsRegistry",
    "PermanentDeliveryError",
    "RedactionError",
    "SecretRedactor",
    "SecurityError",
    "Timer",
    "TransientDeliveryError",
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_logger",
    "get_metrics",
    "unbind_context",
]
