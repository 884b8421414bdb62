"""Data models and transfer objects."""

from .event import (
    Actor,
    Classification,
    DeclaredType,
    EventKind,
    InboundEvent,
    IssueLabeled,
    IssueOpened,
    IssueUnlabeled,
    Other,
    ParsedEvent,
    PullRequestOpened,
    Push,
)
from .routing import (
    Acceptance,
    Delivered,
    DeliveryResult,
    Failed,
    ProcessingOutcome,
    Route,
    RoutingDecision,
    Rule,
)

__all__ = [
    # Event models
    "Actor",
    "Classification",
    "DeclaredType",
    "EventKind",
    "InboundEvent",
    "IssueLabeled",
    "IssueOpened",
    "IssueUnlabeled",
    "Other",
    "ParsedEvent",
    "PullRequestOpened",
    "Push",
    # Routing models
    "Route",
    "RoutingDecision",
    "Rule",
    # Delivery models
    "Acceptance",
    "Delivered",
    "DeliveryResult",
    "Failed",
    "ProcessingOutcome",
]
