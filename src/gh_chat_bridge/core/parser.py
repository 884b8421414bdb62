"""Decode verified webhook bodies into typed events.

Only a small vocabulary is handled (issues opened/labeled/unlabeled, pull
requests opened, pushes). Everything else decodes to ``Other`` so new
GitHub event types never break the endpoint. A payload for a handled type
that is not valid JSON or lacks required fields raises
``MalformedPayloadError``; redelivering it would fail the same way, so it
is never retried.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

import structlog
from pydantic import BaseModel, ValidationError, field_validator

from gh_chat_bridge.models.event import (
    Actor,
    DeclaredType,
    IssueLabeled,
    IssueOpened,
    IssueUnlabeled,
    Other,
    ParsedEvent,
    PullRequestOpened,
    Push,
)
from gh_chat_bridge.utils.async_helpers import MalformedPayloadError
from gh_chat_bridge.utils.security import validate_repo_name

log = structlog.get_logger()

EVENT_TYPE_HEADER = "X-GitHub-Event"
DELIVERY_ID_HEADER = "X-GitHub-Delivery"

HANDLED_EVENT_TYPES = frozenset({"issues", "pull_request", "push"})


# =============================================================================
# Wire models
# =============================================================================


class _Sender(BaseModel):
    id: int
    login: str
    type: str | None = None


class _Repository(BaseModel):
    full_name: str

    @field_validator("full_name")
    @classmethod
    def validate_full_name(cls, v: str) -> str:
        if not validate_repo_name(v):
            raise ValueError(f"Invalid repository name: {v!r}")
        return v


class _Envelope(BaseModel):
    repository: _Repository
    sender: _Sender


class _Issue(BaseModel):
    number: int
    title: str
    html_url: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class _Label(BaseModel):
    name: str


class _IssuesPayload(_Envelope):
    action: str
    issue: _Issue
    label: _Label | None = None


class _PullRequestPayload(_Envelope):
    action: str
    pull_request: _Issue


class _HeadCommit(BaseModel):
    message: str | None = None
    timestamp: datetime | None = None


class _PushPayload(_Envelope):
    ref: str
    compare: str = ""
    commits: list[dict[str, Any]] = []
    head_commit: _HeadCommit | None = None
    deleted: bool = False


# =============================================================================
# Parsing
# =============================================================================


def _as_utc(value: datetime | None, fallback: datetime) -> datetime:
    if value is None:
        return fallback
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _actor(sender: _Sender) -> Actor:
    return Actor(
        id=sender.id,
        login=sender.login,
        declared_type=DeclaredType.from_wire(sender.type),
    )


def _decode(body: bytes, event_type: str) -> dict[str, Any]:
    try:
        document = json.loads(body)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedPayloadError(f"Body is not valid JSON: {e}", event_type) from e

    if not isinstance(document, dict):
        raise MalformedPayloadError("Body is not a JSON object", event_type)
    return document


def _parse_other(
    body: bytes, event_type: str, delivery_id: str, received_at: datetime
) -> Other:
    """Build an ``Other`` event, reading whatever identifying fields exist."""
    repository = ""
    actor = Actor(id=0, login="", declared_type=DeclaredType.UNKNOWN)
    action = None

    try:
        document = json.loads(body)
    except (UnicodeDecodeError, json.JSONDecodeError):
        document = None

    if isinstance(document, dict):
        try:
            envelope = _Envelope.model_validate(document)
            repository = envelope.repository.full_name
            actor = _actor(envelope.sender)
        except ValidationError:
            pass
        if isinstance(document.get("action"), str):
            action = document["action"]

    return Other(
        delivery_id=delivery_id,
        repository=repository,
        actor=actor,
        timestamp=received_at,
        event_type=event_type,
        action=action,
    )


def parse_event(
    body: bytes,
    event_type: str | None,
    delivery_id: str | None,
    received_at: datetime | None = None,
) -> ParsedEvent:
    """Decode a verified webhook body into a typed event.

    Args:
        body: Raw request body (signature already verified).
        event_type: Value of the ``X-GitHub-Event`` header.
        delivery_id: Value of the ``X-GitHub-Delivery`` header.
        received_at: Receive time, used when the payload carries no timestamp.

    Returns:
        Exactly one event variant; unhandled event types and actions yield Other.

    Raises:
        MalformedPayloadError: A handled event type has an invalid body.
    """
    event_type = (event_type or "").strip().lower()
    delivery_id = delivery_id or ""
    received_at = _as_utc(received_at, datetime.now(UTC))

    if event_type not in HANDLED_EVENT_TYPES:
        return _parse_other(body, event_type, delivery_id, received_at)

    document = _decode(body, event_type)
    if event_type != "push" and not isinstance(document.get("action"), str):
        raise MalformedPayloadError(f"{event_type} payload has no action", event_type)

    try:
        if event_type == "issues":
            return _parse_issues(document, delivery_id, received_at) or _parse_other(
                body, event_type, delivery_id, received_at
            )
        if event_type == "pull_request":
            return _parse_pull_request(document, delivery_id, received_at) or _parse_other(
                body, event_type, delivery_id, received_at
            )
        return _parse_push(document, delivery_id, received_at)
    except ValidationError as e:
        log.warning(
            "payload_validation_failed",
            event_type=event_type,
            delivery_id=delivery_id,
            errors=e.error_count(),
        )
        raise MalformedPayloadError(
            f"Invalid {event_type} payload: {e.error_count()} validation error(s)", event_type
        ) from e


def _parse_issues(
    document: dict[str, Any], delivery_id: str, received_at: datetime
) -> ParsedEvent | None:
    action = document.get("action")
    if action not in ("opened", "labeled", "unlabeled"):
        return None

    payload = _IssuesPayload.model_validate(document)
    issue = payload.issue
    common: dict[str, Any] = {
        "delivery_id": delivery_id,
        "repository": payload.repository.full_name,
        "actor": _actor(payload.sender),
        "timestamp": _as_utc(issue.updated_at or issue.created_at, received_at),
        "number": issue.number,
        "title": issue.title,
        "url": issue.html_url,
    }

    if action == "opened":
        return IssueOpened(**common)

    if payload.label is None:
        raise MalformedPayloadError(f"issues.{action} payload has no label", "issues")

    if action == "labeled":
        return IssueLabeled(label=payload.label.name, **common)
    return IssueUnlabeled(label=payload.label.name, **common)


def _parse_pull_request(
    document: dict[str, Any], delivery_id: str, received_at: datetime
) -> ParsedEvent | None:
    if document.get("action") != "opened":
        return None

    payload = _PullRequestPayload.model_validate(document)
    pull_request = payload.pull_request
    return PullRequestOpened(
        delivery_id=delivery_id,
        repository=payload.repository.full_name,
        actor=_actor(payload.sender),
        timestamp=_as_utc(pull_request.created_at or pull_request.updated_at, received_at),
        number=pull_request.number,
        title=pull_request.title,
        url=pull_request.html_url,
    )


def _parse_push(document: dict[str, Any], delivery_id: str, received_at: datetime) -> Push:
    payload = _PushPayload.model_validate(document)
    head = payload.head_commit
    return Push(
        delivery_id=delivery_id,
        repository=payload.repository.full_name,
        actor=_actor(payload.sender),
        timestamp=_as_utc(head.timestamp if head else None, received_at),
        ref=payload.ref,
        commit_count=len(payload.commits),
        compare_url=payload.compare,
        head_commit_message=head.message if head else None,
        deleted=payload.deleted,
    )
