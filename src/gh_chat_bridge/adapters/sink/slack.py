"""Slack channel sink using the Slack Web API.

Posts messages with ``chat.postMessage``. Rate limiting, server errors
and connection failures are reported as transient so the Dispatcher can
back off and retry; every other Slack API error is permanent.

Message text is escaped before posting so titles and commit messages
cannot carry Slack mentions such as ``<!channel>``.
"""

from __future__ import annotations

import asyncio
from typing import Any

import aiohttp
import structlog
from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient

from ...config.schema import SlackSinkConfig
from ...utils.async_helpers import PermanentDeliveryError, TransientDeliveryError
from ...utils.security import escape_slack_text

log = structlog.get_logger()

# Slack error codes worth retrying
TRANSIENT_SLACK_ERRORS = frozenset(
    {"ratelimited", "service_unavailable", "internal_error", "fatal_error", "request_timeout"}
)


class SlackSink:
    """Slack sink implementing the ChannelSink protocol.

    Example:
        sink = SlackSink(SlackSinkConfig(bot_token="xoxb-..."))
        await sink.post("C0123456789", "Hello!")
        await sink.close()
    """

    def __init__(self, config: SlackSinkConfig, client: AsyncWebClient | None = None) -> None:
        """Initialize the Slack sink.

        Args:
            config: Slack-specific configuration.
            client: Optional pre-built Web API client.
        """
        self._config = config
        self._client = client or AsyncWebClient(token=config.bot_token)

    async def post(self, channel_id: str, text: str) -> None:
        """Post a message to a Slack channel.

        Raises:
            TransientDeliveryError: Rate limited, Slack-side or network failure.
            PermanentDeliveryError: Any other Slack API error.
        """
        try:
            result = await self._client.chat_postMessage(
                channel=channel_id,
                text=escape_slack_text(text),
                link_names=False,
                unfurl_links=False,
                unfurl_media=False,
            )
        except SlackApiError as e:
            raise self._classify_error(channel_id, e) from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            log.warning("slack_post_network_error", channel_id=channel_id, error=str(e))
            raise TransientDeliveryError(f"Slack request failed: {e}") from e

        log.debug("slack_message_posted", channel_id=channel_id, message_ts=result.get("ts"))

    def _classify_error(self, channel_id: str, error: SlackApiError) -> Exception:
        response: Any = error.response
        code = response.get("error", "") if response is not None else ""
        status = getattr(response, "status_code", None)

        if code in TRANSIENT_SLACK_ERRORS or status == 429 or (status or 0) >= 500:
            retry_after = None
            headers = getattr(response, "headers", None) or {}
            raw_retry_after = headers.get("Retry-After") or headers.get("retry-after")
            if raw_retry_after is not None:
                try:
                    retry_after = float(raw_retry_after)
                except (TypeError, ValueError):
                    retry_after = None

            log.warning("slack_post_transient_error", channel_id=channel_id, error=code)
            return TransientDeliveryError(f"Slack error: {code or status}", retry_after)

        log.error("slack_post_failed", channel_id=channel_id, error=code)
        return PermanentDeliveryError(f"Slack error: {code or status}")

    async def close(self) -> None:
        """Close the underlying HTTP session, if the client created one."""
        session = getattr(self._client, "session", None)
        if session is not None and not session.closed:
            await session.close()
