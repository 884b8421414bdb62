"""Data models for inbound webhook events.

A delivery is decoded into exactly one event variant. Variants are frozen
dataclasses so a parsed event can be handed to the classifier and the
router without any of them being able to change it.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import ClassVar


class DeclaredType(StrEnum):
    """Account type as declared by GitHub in ``sender.type``."""

    USER = "User"
    BOT = "Bot"
    ORGANIZATION = "Organization"
    UNKNOWN = "Unknown"

    @classmethod
    def from_wire(cls, value: object) -> DeclaredType:
        """Map a raw ``sender.type`` value, falling back to UNKNOWN."""
        for member in cls:
            if member is not cls.UNKNOWN and member.value == value:
                return member
        return cls.UNKNOWN


class Classification(StrEnum):
    """Who is behind an event, as resolved by the actor classifier."""

    HUMAN = "human"
    AUTOMATION = "automation"
    UNKNOWN = "unknown"


class EventKind(StrEnum):
    """Tag of each event variant."""

    ISSUE_OPENED = "issue_opened"
    ISSUE_LABELED = "issue_labeled"
    ISSUE_UNLABELED = "issue_unlabeled"
    PULL_REQUEST_OPENED = "pull_request_opened"
    PUSH = "push"
    OTHER = "other"


@dataclass(frozen=True)
class Actor:
    """The account that triggered an event."""

    id: int
    login: str
    declared_type: DeclaredType


@dataclass(frozen=True)
class InboundEvent:
    """A raw webhook request: body plus the headers the pipeline reads."""

    body: bytes
    signature: str | None
    event_type: str | None
    delivery_id: str | None


@dataclass(frozen=True, kw_only=True)
class _EventBase:
    kind: ClassVar[EventKind]

    # Unique per delivery attempt; redeliveries of one action may differ
    delivery_id: str
    repository: str
    actor: Actor
    timestamp: datetime


@dataclass(frozen=True, kw_only=True)
class IssueOpened(_EventBase):
    kind: ClassVar[EventKind] = EventKind.ISSUE_OPENED

    number: int
    title: str
    url: str


@dataclass(frozen=True, kw_only=True)
class IssueLabeled(_EventBase):
    kind: ClassVar[EventKind] = EventKind.ISSUE_LABELED

    number: int
    title: str
    url: str
    label: str


@dataclass(frozen=True, kw_only=True)
class IssueUnlabeled(_EventBase):
    kind: ClassVar[EventKind] = EventKind.ISSUE_UNLABELED

    number: int
    title: str
    url: str
    label: str


@dataclass(frozen=True, kw_only=True)
class PullRequestOpened(_EventBase):
    kind: ClassVar[EventKind] = EventKind.PULL_REQUEST_OPENED

    number: int
    title: str
    url: str


# GitHub lists at most this many commits in a push payload
PUSH_COMMIT_LIMIT = 2048


@dataclass(frozen=True, kw_only=True)
class Push(_EventBase):
    kind: ClassVar[EventKind] = EventKind.PUSH

    ref: str
    commit_count: int
    compare_url: str
    head_commit_message: str | None = None
    deleted: bool = False

    @property
    def branch(self) -> str:
        """Branch or tag name without the ``refs/heads/`` prefix."""
        for prefix in ("refs/heads/", "refs/tags/"):
            if self.ref.startswith(prefix):
                return self.ref[len(prefix) :]
        return self.ref


@dataclass(frozen=True, kw_only=True)
class Other(_EventBase):
    """Any event outside the handled vocabulary. Never routed."""

    kind: ClassVar[EventKind] = EventKind.OTHER

    event_type: str
    action: str | None = None


ParsedEvent = IssueOpened | IssueLabeled | IssueUnlabeled | PullRequestOpened | Push | Other
