"""Incoming-webhook channel sink.

Each channel id maps to an incoming-webhook URL (Discord and compatible
services). Messages are posted as ``{"content": text}`` with every
mention type disabled, so text copied from issues cannot ping
``@everyone``, roles or users.
"""

from __future__ import annotations

import httpx
import structlog

from ...config.schema import WebhookSinkConfig
from ...utils.async_helpers import PermanentDeliveryError, TransientDeliveryError

log = structlog.get_logger()

# Discord rejects longer message content
MAX_CONTENT_LENGTH = 2000

NO_MENTIONS: dict[str, list[str]] = {"parse": []}


class WebhookSink:
    """Incoming-webhook sink implementing the ChannelSink protocol.

    Example:
        sink = WebhookSink(WebhookSinkConfig(channels={"activity": "https://..."}))
        await sink.post("activity", "Hello!")
        await sink.close()
    """

    def __init__(self, config: WebhookSinkConfig, client: httpx.AsyncClient | None = None) -> None:
        self._urls = {channel_id: str(url) for channel_id, url in config.channels.items()}
        self._client = client or httpx.AsyncClient(timeout=config.timeout)

    async def post(self, channel_id: str, text: str) -> None:
        """Post a message to the webhook URL configured for ``channel_id``.

        Raises:
            TransientDeliveryError: Timeout, transport error, 429 or 5xx.
            PermanentDeliveryError: Unknown channel or any other 4xx.
        """
        url = self._urls.get(channel_id)
        if url is None:
            raise PermanentDeliveryError(f"No webhook URL configured for channel {channel_id}")

        if len(text) > MAX_CONTENT_LENGTH:
            text = text[: MAX_CONTENT_LENGTH - 1] + "…"

        try:
            response = await self._client.post(
                url, json={"content": text, "allowed_mentions": NO_MENTIONS}
            )
        except httpx.TransportError as e:
            log.warning("webhook_post_network_error", channel_id=channel_id, error=str(e))
            raise TransientDeliveryError(f"Webhook request failed: {e}") from e

        if response.status_code == 429 or response.status_code >= 500:
            retry_after = _retry_after(response)
            log.warning(
                "webhook_post_transient_error",
                channel_id=channel_id,
                status_code=response.status_code,
                retry_after=retry_after,
            )
            raise TransientDeliveryError(
                f"Webhook returned HTTP {response.status_code}", retry_after
            )

        if response.is_error:
            log.error(
                "webhook_post_failed", channel_id=channel_id, status_code=response.status_code
            )
            raise PermanentDeliveryError(f"Webhook returned HTTP {response.status_code}")

        log.debug("webhook_message_posted", channel_id=channel_id, status_code=response.status_code)

    async def close(self) -> None:
        await self._client.aclose()


def _retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None
