"""Abstract interface for outbound chat delivery."""

from typing import Protocol


class ChannelSink(Protocol):
    """Posts a text message to a chat channel.

    Adapters (Slack Web API, incoming webhooks, ...) implement this
    protocol. The Dispatcher owns retries; a sink makes a single attempt.
    """

    async def post(self, channel_id: str, text: str) -> None:
        """
        Post ``text`` to the channel identified by ``channel_id``.

        Args:
            channel_id: Opaque channel identifier from configuration
            text: Rendered message

        Raises:
            TransientDeliveryError: Network error, timeout, rate limit or
                server-side failure; the Dispatcher may retry
            PermanentDeliveryError: Unknown channel, bad credentials or a
                rejected message; retrying will not help
        """
        ...

    async def close(self) -> None:
        """Release connections held by the sink."""
        ...
