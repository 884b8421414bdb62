"""Shared test fixtures for gh-chat-bridge."""

from __future__ import annotations

import asyncio
import json
from collections import defaultdict
from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock

import pytest

from gh_chat_bridge.config.schema import (
    BridgeConfig,
    ChatConfig,
    GitHubConfig,
    RoutingConfig,
    RuntimeConfig,
    WebhookSinkConfig,
)
from gh_chat_bridge.core.dispatcher import Dispatcher
from gh_chat_bridge.core.pipeline import EventPipeline
from gh_chat_bridge.core.signature import compute_signature
from gh_chat_bridge.models.event import Actor, DeclaredType, InboundEvent
from gh_chat_bridge.utils.metrics import MetricsRegistry

WEBHOOK_SECRET = "test-webhook-secret"
ACTIVITY_CHANNEL = "activity"
GFI_CHANNEL = "good-first-issues"
REPO = "octo-org/widgets"


class RecordingSink:
    """In-memory ChannelSink that records successful posts.

    Queue exceptions per channel in ``failures``; each attempt pops one.
    """

    def __init__(self, delay: float = 0.0) -> None:
        self.delay = delay
        self.posts: list[tuple[str, str]] = []
        self.attempts: list[str] = []
        self.failures: dict[str, list[Exception]] = defaultdict(list)
        self.closed = False
        self.active = 0
        self.max_active = 0

    async def post(self, channel_id: str, text: str) -> None:
        self.attempts.append(channel_id)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            queue = self.failures.get(channel_id)
            if queue:
                raise queue.pop(0)
            self.posts.append((channel_id, text))
        finally:
            self.active -= 1

    async def close(self) -> None:
        self.closed = True

    def channels(self) -> list[str]:
        return [channel for channel, _ in self.posts]


def make_config(
    allow_list: set[str] | None = None,
    deny_list: set[str] | None = None,
    max_concurrent: int = 10,
) -> BridgeConfig:
    """Build a webhook-provider configuration for tests."""
    return BridgeConfig(
        github=GitHubConfig(
            signing_secret=WEBHOOK_SECRET,
            human_allow_list=frozenset(allow_list or ()),
            automation_deny_list=frozenset(deny_list or ()),
        ),
        routing=RoutingConfig(
            activity_channel_id=ACTIVITY_CHANNEL,
            good_first_issue_channel_id=GFI_CHANNEL,
        ),
        chat=ChatConfig(
            provider="webhook",
            webhook=WebhookSinkConfig(
                channels={
                    ACTIVITY_CHANNEL: "https://chat.example.com/hooks/activity",
                    GFI_CHANNEL: "https://chat.example.com/hooks/gfi",
                }
            ),
        ),
        runtime=RuntimeConfig(max_concurrent=max_concurrent, shutdown_timeout=5.0),
    )


# =============================================================================
# Payload builders
# =============================================================================


def sender(login: str = "alice", sender_type: str = "User", sender_id: int = 1) -> dict[str, Any]:
    return {"id": sender_id, "login": login, "type": sender_type}


def issues_payload(
    action: str = "opened",
    login: str = "alice",
    sender_type: str = "User",
    number: int = 42,
    title: str = "Crash when saving",
    label: str | None = None,
    repo: str = REPO,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "action": action,
        "issue": {
            "number": number,
            "title": title,
            "html_url": f"https://github.com/{repo}/issues/{number}",
            "created_at": "2024-05-01T12:00:00Z",
            "updated_at": "2024-05-02T08:30:00Z",
        },
        "repository": {"full_name": repo},
        "sender": sender(login, sender_type),
    }
    if label is not None:
        payload["label"] = {"name": label}
    return payload


def pull_request_payload(
    action: str = "opened",
    login: str = "alice",
    sender_type: str = "User",
    number: int = 7,
    title: str = "Fix save crash",
    repo: str = REPO,
) -> dict[str, Any]:
    return {
        "action": action,
        "pull_request": {
            "number": number,
            "title": title,
            "html_url": f"https://github.com/{repo}/pull/{number}",
            "created_at": "2024-05-03T09:00:00Z",
        },
        "repository": {"full_name": repo},
        "sender": sender(login, sender_type),
    }


def push_payload(
    login: str = "alice",
    sender_type: str = "User",
    ref: str = "refs/heads/main",
    commits: int = 2,
    message: str = "Fix typo\n\nLonger description",
    repo: str = REPO,
) -> dict[str, Any]:
    return {
        "ref": ref,
        "compare": f"https://github.com/{repo}/compare/abc...def",
        "commits": [{"id": f"c{i}"} for i in range(commits)],
        "head_commit": {"message": message, "timestamp": "2024-05-04T10:00:00+02:00"},
        "repository": {"full_name": repo},
        "sender": sender(login, sender_type),
    }


def encode(payload: dict[str, Any]) -> bytes:
    return json.dumps(payload).encode("utf-8")


def signed_inbound(
    payload: dict[str, Any] | bytes,
    event_type: str = "issues",
    delivery_id: str = "delivery-1",
    secret: str = WEBHOOK_SECRET,
) -> InboundEvent:
    """Build an InboundEvent carrying a valid signature."""
    body = payload if isinstance(payload, bytes) else encode(payload)
    return InboundEvent(
        body=body,
        signature=compute_signature(body, secret),
        event_type=event_type,
        delivery_id=delivery_id,
    )


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def bridge_config() -> BridgeConfig:
    """Default test configuration."""
    return make_config()


@pytest.fixture
def metrics() -> MetricsRegistry:
    """A fresh metrics registry, isolated from the global one."""
    return MetricsRegistry()


@pytest.fixture
def sink() -> RecordingSink:
    """In-memory chat sink."""
    return RecordingSink()


@pytest.fixture
def no_sleep() -> AsyncMock:
    """Sleep replacement recording retry waits without waiting."""
    return AsyncMock()


@pytest.fixture
def dispatcher(sink: RecordingSink, metrics: MetricsRegistry, no_sleep: AsyncMock) -> Dispatcher:
    return Dispatcher(sink, metrics=metrics, sleep=no_sleep)


@pytest.fixture
def pipeline(
    bridge_config: BridgeConfig, dispatcher: Dispatcher, metrics: MetricsRegistry
) -> EventPipeline:
    return EventPipeline(bridge_config, dispatcher, metrics=metrics)


@pytest.fixture
def human() -> Actor:
    return Actor(id=1, login="alice", declared_type=DeclaredType.USER)


@pytest.fixture
def bot() -> Actor:
    return Actor(id=2, login="dependabot[bot]", declared_type=DeclaredType.BOT)


@pytest.fixture
def now() -> datetime:
    return datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
