"""Render chat messages for routed events.

Messages are plain text with light Markdown (bold, inline links in angle
brackets) which reads correctly in both Slack and Discord.
"""

from __future__ import annotations

import structlog

from gh_chat_bridge.models.event import (
    PUSH_COMMIT_LIMIT,
    IssueLabeled,
    IssueOpened,
    IssueUnlabeled,
    ParsedEvent,
    PullRequestOpened,
    Push,
)
from gh_chat_bridge.utils.security import SecretRedactor, sanitize_for_chat

log = structlog.get_logger()

_redactor = SecretRedactor()


def _clean(text: str | None, max_length: int = 256) -> str:
    text = text or ""
    # Commit messages occasionally carry pasted tokens; keep them out of chat
    if _redactor.has_secrets(text):
        log.warning("secret_removed_from_message")
        text = _redactor.redact(text)
    return sanitize_for_chat(text, max_length=max_length)


def format_activity(event: ParsedEvent) -> str | None:
    """Render the activity-channel notification for an event.

    Returns:
        The message text, or None for events that have no activity message.
    """
    login = _clean(event.actor.login, 64)
    repo = event.repository

    match event:
        case IssueOpened(number=number, title=title, url=url):
            return f"**[{repo}]** {login} opened issue #{number}: {_clean(title)}\n<{url}>"
        case IssueLabeled(number=number, title=title, url=url, label=label):
            return (
                f"**[{repo}]** {login} added label `{_clean(label, 64)}` "
                f"to issue #{number}: {_clean(title)}\n<{url}>"
            )
        case IssueUnlabeled(number=number, title=title, url=url, label=label):
            return (
                f"**[{repo}]** {login} removed label `{_clean(label, 64)}` "
                f"from issue #{number}: {_clean(title)}\n<{url}>"
            )
        case PullRequestOpened(number=number, title=title, url=url):
            return (
                f"**[{repo}]** {login} opened pull request #{number}: {_clean(title)}\n<{url}>"
            )
        case Push(deleted=True):
            return f"**[{repo}]** {login} deleted `{_clean(event.branch, 128)}`"
        case Push(commit_count=count, compare_url=compare_url, head_commit_message=message):
            noun = "commit" if count == 1 else "commits"
            shown = f"{count}+" if count >= PUSH_COMMIT_LIMIT else str(count)
            branch = _clean(event.branch, 128)
            text = f"**[{repo}]** {login} pushed {shown} {noun} to `{branch}`"
            if message and message.strip():
                text += f": {_clean(message.strip().splitlines()[0])}"
            if compare_url:
                text += f"\n<{compare_url}>"
            return text
        case _:
            return None


def format_good_first_issue_alert(event: IssueLabeled) -> str:
    """Render the good-first-issue alert for a newly labeled issue."""
    return (
        f"**New good first issue in {event.repository}**\n"
        f"#{event.number}: {_clean(event.title)}\n"
        f"<{event.url}>"
    )
