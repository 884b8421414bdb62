"""Resolve whether an event was triggered by a human or by automation.

First match wins:

1. login on the deny-list      -> AUTOMATION
2. login on the allow-list     -> HUMAN
3. declared type Bot           -> AUTOMATION
4. declared type User/Org      -> HUMAN
5. anything else               -> UNKNOWN
"""

from __future__ import annotations

from collections.abc import Iterable

from gh_chat_bridge.models.event import Actor, Classification, DeclaredType


def _normalize(logins: Iterable[str]) -> frozenset[str]:
    return frozenset(login.strip().lower() for login in logins if login.strip())


def classify(
    actor: Actor,
    allow_list: frozenset[str] = frozenset(),
    deny_list: frozenset[str] = frozenset(),
) -> Classification:
    """Classify an actor. Lists must already hold lowercased logins."""
    login = actor.login.strip().lower()

    if login in deny_list:
        return Classification.AUTOMATION
    if login in allow_list:
        return Classification.HUMAN

    if actor.declared_type is DeclaredType.BOT:
        return Classification.AUTOMATION
    if actor.declared_type in (DeclaredType.USER, DeclaredType.ORGANIZATION):
        return Classification.HUMAN

    return Classification.UNKNOWN


class ActorClassifier:
    """Actor classification with allow/deny lists fixed at construction.

    Example:
        classifier = ActorClassifier(
            allow_list={"release-captain"},
            deny_list={"renovate-helper"},
        )
        classifier.classify(event.actor)
    """

    def __init__(
        self,
        allow_list: Iterable[str] = (),
        deny_list: Iterable[str] = (),
    ) -> None:
        self._allow_list = _normalize(allow_list)
        self._deny_list = _normalize(deny_list)

    @property
    def allow_list(self) -> frozenset[str]:
        return self._allow_list

    @property
    def deny_list(self) -> frozenset[str]:
        return self._deny_list

    def classify(self, actor: Actor) -> Classification:
        return classify(actor, self._allow_list, self._deny_list)
