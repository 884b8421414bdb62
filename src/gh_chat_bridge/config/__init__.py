"""Configuration loading and validation."""

from .loader import load_config, validate_config
from .schema import (
    DEFAULT_TARGET_LABEL,
    BridgeConfig,
    ChatConfig,
    DedupConfig,
    DispatchConfig,
    GitHubConfig,
    LoggingConfig,
    RoutingConfig,
    RuntimeConfig,
    ServerConfig,
    SlackSinkConfig,
    WebhookSinkConfig,
)

__all__ = [
    "DEFAULT_TARGET_LABEL",
    # Loader
    "load_config",
    "validate_config",
    # Root config
    "BridgeConfig",
    # Sections
    "ChatConfig",
    "DedupConfig",
    "DispatchConfig",
    "GitHubConfig",
    "LoggingConfig",
    "RoutingConfig",
    "RuntimeConfig",
    "ServerConfig",
    # Sink-specific configs
    "SlackSinkConfig",
    "WebhookSinkConfig",
]
