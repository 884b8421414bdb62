"""Data models for routing decisions and delivery outcomes."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from .event import Classification, EventKind


class Rule(Enum):
    """Routing rule that produced a message."""

    HUMAN_ACTIVITY = "human_activity"
    GOOD_FIRST_ISSUE = "good_first_issue"


@dataclass(frozen=True)
class Route:
    """One message bound for one channel."""

    channel_id: str
    message: str
    rule: Rule


@dataclass(frozen=True)
class RoutingDecision:
    """All messages an event should produce. Empty means filtered out."""

    routes: tuple[Route, ...] = ()

    def __bool__(self) -> bool:
        return bool(self.routes)

    def __len__(self) -> int:
        return len(self.routes)

    @property
    def channels(self) -> frozenset[str]:
        return frozenset(route.channel_id for route in self.routes)


@dataclass(frozen=True)
class Delivered:
    """The sink accepted the message."""

    channel_id: str
    attempts: int = 1


@dataclass(frozen=True)
class Failed:
    """The message could not be delivered; no further retries will happen."""

    channel_id: str
    reason: str
    attempts: int = 1


DeliveryResult = Delivered | Failed


class Acceptance(Enum):
    """What the HTTP layer should answer for one inbound request."""

    ACCEPTED = "accepted"
    REJECTED_UNAUTHORIZED = "rejected_unauthorized"
    REJECTED_MALFORMED = "rejected_malformed"


@dataclass(frozen=True)
class ProcessingOutcome:
    """Result of routing and delivering a single event."""

    event_kind: EventKind
    classification: Classification | None = None
    decision: RoutingDecision = field(default_factory=RoutingDecision)
    results: tuple[DeliveryResult, ...] = ()
    error: str | None = None

    @property
    def delivered(self) -> int:
        return sum(1 for r in self.results if isinstance(r, Delivered))

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if isinstance(r, Failed))
