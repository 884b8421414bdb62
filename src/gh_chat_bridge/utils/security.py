"""Security utilities for secret redaction and input validation.

This module implements fail-closed security patterns. Redaction that
cannot be performed raises instead of letting potentially sensitive data
through to the logs.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from collections.abc import Sequence

log = structlog.get_logger()


class SecurityError(Exception):
    """Base exception for security-related errors."""


class RedactionError(SecurityError):
    """Raised when secret redaction fails."""


# Repository full name: owner/name
REPO_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9_.-]+/[a-zA-Z0-9_.-]+$")


class SecretRedactor:
    """Detects and redacts secrets from text.

    If a pattern fails to compile or execute the redactor raises rather
    than returning the unredacted text.

    Usage:
        redactor = SecretRedactor()
        safe_text = redactor.redact(potentially_sensitive_text)

    Attributes:
        patterns: List of compiled regex patterns to detect secrets.
        placeholder: The string to replace secrets with (default: "[REDACTED]").
    """

    DEFAULT_PATTERNS: tuple[tuple[str, str], ...] = (
        (
            r"(?i)(api[_-]?key|secret|token|password|credential)\s*[=:]\s*[\"']?[\w-]{16,}",
            "Generic secret",
        ),
        # Slack
        (r"xox[baprs]-[\w-]+", "Slack token"),
        (r"https://hooks\.slack\.com/services/[\w/]+", "Slack incoming webhook"),
        # Discord
        (
            r"https://(?:\w+\.)?discord(?:app)?\.com/api/webhooks/\d+/[\w-]+",
            "Discord webhook",
        ),
        # GitHub
        (r"ghp_[a-zA-Z0-9]{36}", "GitHub PAT"),
        (r"github_pat_[a-zA-Z0-9_]{22,}", "GitHub fine-grained PAT"),
        (r"gh[ousr]_[a-zA-Z0-9]{36}", "GitHub app token"),
        (r"sha256=[a-fA-F0-9]{64}", "Webhook signature"),
        # Private keys
        (
            r"-----BEGIN (?:RSA |EC |DSA |OPENSSH )?PRIVATE KEY-----",
            "Private key header",
        ),
        # JWT tokens
        (
            r"eyJ[a-zA-Z0-9_-]*\.eyJ[a-zA-Z0-9_-]*\.[a-zA-Z0-9_-]*",
            "JWT token",
        ),
    )

    def __init__(
        self,
        placeholder: str = "[REDACTED]",
        custom_patterns: Sequence[tuple[str, str]] | None = None,
    ) -> None:
        """Initialize the SecretRedactor.

        Args:
            placeholder: String to replace detected secrets with.
            custom_patterns: Additional (pattern, name) tuples to detect.

        Raises:
            RedactionError: If any pattern fails to compile.
        """
        self.placeholder = placeholder
        self._pattern_names: dict[re.Pattern[str], str] = {}

        all_patterns = list(self.DEFAULT_PATTERNS)
        if custom_patterns:
            all_patterns.extend(custom_patterns)

        try:
            for pattern_str, name in all_patterns:
                self._pattern_names[re.compile(pattern_str)] = name
        except re.error as e:
            msg = f"Failed to compile secret pattern '{pattern_str}': {e}"
            log.error("pattern_compilation_failed", pattern=pattern_str, error=str(e))
            raise RedactionError(msg) from e

    @property
    def patterns(self) -> list[re.Pattern[str]]:
        """Return the list of compiled patterns."""
        return list(self._pattern_names.keys())

    def redact(self, text: str) -> str:
        """Redact all secrets from the given text.

        Args:
            text: The text to scan and redact secrets from.

        Returns:
            The text with all detected secrets replaced with placeholder.

        Raises:
            RedactionError: If redaction fails for any reason.
        """
        if not text:
            return text

        try:
            result = text
            for pattern in self._pattern_names:
                result = pattern.sub(self.placeholder, result)
            return result
        except Exception as e:
            log.error("redaction_failed", error=str(e))
            raise RedactionError(f"Redaction failed: {e}") from e

    def has_secrets(self, text: str) -> bool:
        """Check if text contains any secrets."""
        if not text:
            return False

        try:
            return any(pattern.search(text) for pattern in self._pattern_names)
        except Exception as e:
            log.error("has_secrets_check_failed", error=str(e))
            raise RedactionError(f"Secret check failed: {e}") from e


def validate_repo_name(repo: str) -> bool:
    """Validate that a repository full name looks like ``owner/name``.

    Args:
        repo: The repository name to validate (e.g., "owner/repo").

    Returns:
        True if the repository name is valid, False otherwise.
    """
    if not repo:
        return False
    return bool(REPO_NAME_PATTERN.match(repo))


def sanitize_for_chat(text: str, max_length: int = 256) -> str:
    """Strip control characters and collapse a value for a one-line chat message.

    Titles and commit messages come from untrusted users; ANSI escapes,
    control characters and newlines are removed so one webhook field
    cannot forge extra lines in the rendered message.

    Args:
        text: The text to sanitize.
        max_length: Longest result returned; longer text is truncated with "…".

    Returns:
        The sanitized single-line text.
    """
    if not text:
        return text

    text = re.sub(r"\x1b\[[0-9;]*m", "", text)
    text = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]", "", text)
    text = " ".join(text.split())

    if len(text) > max_length:
        text = text[: max_length - 1] + "…"
    return text


# Plain angle-bracket links as written by the message renderers
_SLACK_LINK = re.compile(r"<https?://[^\s<>|]+>")


def _slack_escape(text: str) -> str:
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def escape_slack_text(text: str) -> str:
    """Escape Slack control characters outside plain ``<https://...>`` links.

    ``<`` opens Slack's special syntax (``<!channel>``, ``<@U123>``,
    ``<url|label>``), so an issue title could otherwise broadcast to a
    whole channel or disguise a link.

    Args:
        text: Rendered message text.

    Returns:
        The text with ``&``, ``<`` and ``>`` escaped everywhere except in
        bare links.
    """
    parts: list[str] = []
    last = 0
    for match in _SLACK_LINK.finditer(text):
        parts.append(_slack_escape(text[last : match.start()]))
        parts.append(match.group(0))
        last = match.end()
    parts.append(_slack_escape(text[last:]))
    return "".join(parts)


def mask_config_value(key: str, value: str) -> str:
    """Mask sensitive config values for logging.

    Args:
        key: The configuration key name.
        value: The configuration value.

    Returns:
        The masked value if the key indicates sensitivity, otherwise the original.
    """
    sensitive_keys = {"token", "key", "secret", "password", "credential", "url"}

    key_lower = key.lower()
    if any(s in key_lower for s in sensitive_keys):
        if len(value) > 8:
            return f"{value[:4]}...{value[-4:]}"
        return "***"

    return value
