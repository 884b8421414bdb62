"""Pydantic models for configuration schema.

Every section is frozen: the configuration is built once at startup and
handed to each component at construction time.
"""

from datetime import timedelta
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_TARGET_LABEL = "good-first-issue"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class GitHubConfig(_Frozen):
    """Webhook verification and actor classification settings."""

    signing_secret: str = Field(..., min_length=1)
    human_allow_list: frozenset[str] = frozenset()
    automation_deny_list: frozenset[str] = frozenset()
    target_label: str = DEFAULT_TARGET_LABEL

    @field_validator("human_allow_list", "automation_deny_list")
    @classmethod
    def normalize_logins(cls, v: frozenset[str]) -> frozenset[str]:
        """GitHub logins are case-insensitive; store them lowercased."""
        return frozenset(login.strip().lower() for login in v if login.strip())

    @field_validator("target_label")
    @classmethod
    def validate_target_label(cls, v: str) -> str:
        """Reject a blank target label."""
        if not v.strip():
            raise ValueError("target_label must not be empty")
        return v.strip()


class RoutingConfig(_Frozen):
    """Destination channels for the two routing rules."""

    activity_channel_id: str = Field(..., min_length=1)
    good_first_issue_channel_id: str = Field(..., min_length=1)


class DedupConfig(_Frozen):
    """Duplicate suppression for good-first-issue alerts."""

    retention_window: timedelta = timedelta(hours=24)
    capacity: int = Field(10_000, ge=1)

    @field_validator("retention_window")
    @classmethod
    def validate_retention_window(cls, v: timedelta) -> timedelta:
        """Require a positive window."""
        if v <= timedelta(0):
            raise ValueError("retention_window must be positive")
        return v


class DispatchConfig(_Frozen):
    """Retry tuning for outbound delivery."""

    max_retries: int = Field(3, ge=0, le=10)
    backoff_base: float = Field(1.0, ge=0.0, le=60.0)
    max_backoff: float = Field(30.0, ge=0.0, le=300.0)
    attempt_timeout: float = Field(10.0, gt=0.0, le=120.0)


class SlackSinkConfig(_Frozen):
    """Slack Web API sink configuration."""

    bot_token: str

    @field_validator("bot_token")
    @classmethod
    def validate_bot_token(cls, v: str) -> str:
        """Validate Slack bot token format."""
        if not v.startswith("xoxb-"):
            raise ValueError("Bot token must start with xoxb-")
        return v


class WebhookSinkConfig(_Frozen):
    """Incoming-webhook sink: one webhook URL per channel id."""

    channels: dict[str, HttpUrl] = {}
    timeout: float = Field(10.0, gt=0.0)


class ChatConfig(_Frozen):
    """Chat provider configuration."""

    provider: Literal["slack", "webhook"]
    slack: SlackSinkConfig | None = None
    webhook: WebhookSinkConfig | None = None


class ServerConfig(_Frozen):
    """Inbound HTTP server configuration."""

    host: str = "0.0.0.0"  # noqa: S104
    port: int = Field(8080, ge=1, le=65535)
    webhook_path: str = "/github"

    @field_validator("webhook_path")
    @classmethod
    def validate_webhook_path(cls, v: str) -> str:
        """Require an absolute path."""
        if not v.startswith("/"):
            raise ValueError("webhook_path must start with /")
        return v


class RuntimeConfig(_Frozen):
    """Runtime configuration."""

    max_concurrent: int = Field(10, ge=1, le=100, description="Max events routed at once")
    shutdown_timeout: float = Field(30.0, ge=0.0, le=600.0)


class FileLoggingConfig(_Frozen):
    """File logging configuration."""

    enabled: bool = False
    path: Path = Path("/var/log/gh-chat-bridge/bridge.log")


class LoggingConfig(_Frozen):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["json", "console"] = "json"
    file: FileLoggingConfig = FileLoggingConfig()


class BridgeConfig(BaseSettings):
    """Root configuration for gh-chat-bridge."""

    github: GitHubConfig
    routing: RoutingConfig
    chat: ChatConfig
    dedup: DedupConfig = DedupConfig()
    dispatch: DispatchConfig = DispatchConfig()
    server: ServerConfig = ServerConfig()
    runtime: RuntimeConfig = RuntimeConfig()
    logging: LoggingConfig = LoggingConfig()

    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",
        frozen=True,
    )
