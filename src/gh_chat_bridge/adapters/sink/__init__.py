"""Channel sinks and the factory that selects one from configuration."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .slack import SlackSink
from .webhook import WebhookSink

if TYPE_CHECKING:
    from ...config.schema import ChatConfig
    from ...interfaces.sink import ChannelSink


def create_sink(config: ChatConfig) -> ChannelSink:
    """Create the sink for the configured chat provider.

    Raises:
        ValueError: If the provider's section is missing or it is unsupported.
    """
    if config.provider == "slack":
        if not config.slack:
            raise ValueError("Slack configuration required when provider is 'slack'")
        return SlackSink(config.slack)

    if config.provider == "webhook":
        if not config.webhook:
            raise ValueError("Webhook configuration required when provider is 'webhook'")
        return WebhookSink(config.webhook)

    raise ValueError(f"Unsupported chat provider: {config.provider}")


__all__ = ["SlackSink", "WebhookSink", "create_sink"]
