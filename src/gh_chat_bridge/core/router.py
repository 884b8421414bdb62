"""Decide which channels an event is forwarded to.

Two independent rules; their routes are combined:

* Human activity: every handled event whose actor classifies as HUMAN is
  posted to the activity channel. AUTOMATION and UNKNOWN are dropped.
* Good-first-issue alert: an ``IssueLabeled`` carrying the target label
  alerts the good-first-issues channel the first time it is seen inside
  the dedup window, whoever added the label. Removing the label neither
  alerts nor clears the dedup entry.

``Router.route`` is pure. The caller resolves the dedup status for
``Router.alert_key(event)`` beforehand and passes it in.
"""

from __future__ import annotations

from gh_chat_bridge.config.schema import DEFAULT_TARGET_LABEL
from gh_chat_bridge.core.dedup import DedupKey, DedupResult
from gh_chat_bridge.core.formatting import format_activity, format_good_first_issue_alert
from gh_chat_bridge.models.event import Classification, IssueLabeled, Other, ParsedEvent
from gh_chat_bridge.models.routing import Route, RoutingDecision, Rule

ALERT_ACTION = "good-first-issue-alert"


class Router:
    """Per-event routing decision function.

    Example:
        router = Router(
            activity_channel_id="C-ACTIVITY",
            good_first_issue_channel_id="C-GFI",
        )
        key = router.alert_key(event)
        status = dedup.check_and_record(key) if key else None
        decision = router.route(event, classification, status)
    """

    def __init__(
        self,
        activity_channel_id: str,
        good_first_issue_channel_id: str,
        target_label: str = DEFAULT_TARGET_LABEL,
    ) -> None:
        self._activity_channel_id = activity_channel_id
        self._good_first_issue_channel_id = good_first_issue_channel_id
        self._target_label = target_label.strip().casefold()

    @property
    def target_label(self) -> str:
        return self._target_label

    def matches_target_label(self, label: str) -> bool:
        return label.strip().casefold() == self._target_label

    def alert_key(self, event: ParsedEvent) -> DedupKey | None:
        """Dedup key for a potential good-first-issue alert, else None."""
        if isinstance(event, IssueLabeled) and self.matches_target_label(event.label):
            return DedupKey(event.repository, event.number, ALERT_ACTION)
        return None

    def route(
        self,
        event: ParsedEvent,
        classification: Classification,
        alert_status: DedupResult | None = None,
    ) -> RoutingDecision:
        """Compute the routes for an event.

        Args:
            event: Parsed event.
            classification: Actor classification for the event.
            alert_status: Dedup outcome for ``alert_key(event)``; None when
                the event has no alert key.

        Returns:
            The routing decision, possibly empty.
        """
        if isinstance(event, Other):
            return RoutingDecision()

        routes: list[Route] = []

        activity = self._route_activity(event, classification)
        if activity is not None:
            routes.append(activity)

        alert = self._route_alert(event, alert_status)
        if alert is not None:
            routes.append(alert)

        return RoutingDecision(tuple(routes))

    def _route_activity(self, event: ParsedEvent, classification: Classification) -> Route | None:
        if classification is not Classification.HUMAN:
            return None

        message = format_activity(event)
        if message is None:
            return None
        return Route(self._activity_channel_id, message, Rule.HUMAN_ACTIVITY)

    def _route_alert(self, event: ParsedEvent, alert_status: DedupResult | None) -> Route | None:
        if not isinstance(event, IssueLabeled) or not self.matches_target_label(event.label):
            return None
        if alert_status is not DedupResult.FIRST_SEEN:
            return None

        return Route(
            self._good_first_issue_channel_id,
            format_good_first_issue_alert(event),
            Rule.GOOD_FIRST_ISSUE,
        )
