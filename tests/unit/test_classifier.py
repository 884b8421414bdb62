"""Tests for actor classification."""

import pytest

from gh_chat_bridge.core.classifier import ActorClassifier, classify
from gh_chat_bridge.models.event import Actor, Classification, DeclaredType


def actor(login: str, declared_type: DeclaredType) -> Actor:
    return Actor(id=1, login=login, declared_type=declared_type)


class TestDeclaredTypes:
    """Classification from GitHub's declared account type alone."""

    @pytest.mark.parametrize(
        ("declared_type", "expected"),
        [
            (DeclaredType.USER, Classification.HUMAN),
            (DeclaredType.ORGANIZATION, Classification.HUMAN),
            (DeclaredType.BOT, Classification.AUTOMATION),
            (DeclaredType.UNKNOWN, Classification.UNKNOWN),
        ],
    )
    def test_declared_type(self, declared_type: DeclaredType, expected: Classification) -> None:
        assert classify(actor("someone", declared_type)) is expected


class TestOverrides:
    """Allow and deny lists take precedence over the declared type."""

    def test_allow_list_overrides_bot(self) -> None:
        classifier = ActorClassifier(allow_list={"release-captain[bot]"})
        assert (
            classifier.classify(actor("release-captain[bot]", DeclaredType.BOT))
            is Classification.HUMAN
        )

    def test_deny_list_overrides_user(self) -> None:
        """Machine accounts that GitHub reports as users."""
        classifier = ActorClassifier(deny_list={"ci-runner"})
        result = classifier.classify(actor("ci-runner", DeclaredType.USER))
        assert result is Classification.AUTOMATION

    def test_deny_list_wins_over_allow_list(self) -> None:
        classifier = ActorClassifier(allow_list={"both"}, deny_list={"both"})
        assert classifier.classify(actor("both", DeclaredType.USER)) is Classification.AUTOMATION

    def test_allow_list_promotes_unknown(self) -> None:
        classifier = ActorClassifier(allow_list={"mannequin"})
        assert classifier.classify(actor("mannequin", DeclaredType.UNKNOWN)) is Classification.HUMAN

    def test_logins_are_case_insensitive(self) -> None:
        classifier = ActorClassifier(deny_list={"CI-Runner "})
        assert classifier.deny_list == frozenset({"ci-runner"})
        result = classifier.classify(actor("CI-RUNNER", DeclaredType.USER))
        assert result is Classification.AUTOMATION

    def test_blank_entries_are_ignored(self) -> None:
        classifier = ActorClassifier(allow_list={"", "  "})
        assert classifier.allow_list == frozenset()

    def test_unlisted_login_falls_through(self) -> None:
        classifier = ActorClassifier(allow_list={"alice"}, deny_list={"ci-runner"})
        assert classifier.classify(actor("bob", DeclaredType.BOT)) is Classification.AUTOMATION


class TestDeterminism:
    """Classification depends only on the actor and the lists."""

    def test_repeated_calls_agree(self) -> None:
        classifier = ActorClassifier(allow_list={"alice"})
        subject = actor("alice", DeclaredType.BOT)
        results = {classifier.classify(subject) for _ in range(10)}
        assert results == {Classification.HUMAN}
