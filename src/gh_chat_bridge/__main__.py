"""Entry point for running the GitHub chat bridge.

It handles:
- Configuration loading
- Logging setup with secret sanitization
- Serving the webhook endpoint with uvicorn
"""

import argparse
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from gh_chat_bridge._version import __version__
from gh_chat_bridge.utils.logging import LogEventNames

if TYPE_CHECKING:
    from gh_chat_bridge.config.schema import BridgeConfig

log = structlog.get_logger()


def setup_logging(debug: bool = False, log_format: str = "console") -> None:
    """Configure structured logging before the config file is read."""
    from gh_chat_bridge.utils.logging import LogFormat, LogLevel, configure_logging

    configure_logging(
        level=LogLevel.DEBUG if debug else LogLevel.INFO,
        log_format=LogFormat(log_format.lower()),
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Returns:
        Parsed argument namespace
    """
    parser = argparse.ArgumentParser(
        prog="gh-chat-bridge",
        description="Forward GitHub webhook events to chat channels",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config/config.yaml"),
        help="Path to configuration file (default: config/config.yaml)",
    )

    parser.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate the configuration and print a summary without serving",
    )

    parser.add_argument(
        "--format",
        choices=["json", "console"],
        default="console",
        help="Log output format (default: console)",
    )

    return parser.parse_args(argv)


def config_summary(config: "BridgeConfig") -> dict[str, str]:
    """Flatten the settings worth showing on ``--dry-run``, secrets masked."""
    from gh_chat_bridge.utils.security import mask_config_value

    summary = {
        "github.signing_secret": config.github.signing_secret,
        "github.target_label": config.github.target_label,
        "github.human_allow_list": ",".join(sorted(config.github.human_allow_list)),
        "github.automation_deny_list": ",".join(sorted(config.github.automation_deny_list)),
        "routing.activity_channel_id": config.routing.activity_channel_id,
        "routing.good_first_issue_channel_id": config.routing.good_first_issue_channel_id,
        "dedup.retention_window": str(config.dedup.retention_window),
        "dispatch.max_retries": str(config.dispatch.max_retries),
        "chat.provider": config.chat.provider,
        "server.listen": f"{config.server.host}:{config.server.port}{config.server.webhook_path}",
    }
    if config.chat.slack is not None:
        summary["chat.slack.bot_token"] = config.chat.slack.bot_token
    if config.chat.webhook is not None:
        for channel_id, url in config.chat.webhook.channels.items():
            summary[f"chat.webhook.channels.{channel_id}.url"] = str(url)

    return {key: mask_config_value(key, value) for key, value in summary.items()}


def run_bridge(config_path: Path, dry_run: bool = False, debug: bool = False) -> int:
    """Load configuration and serve until interrupted.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    log.info(LogEventNames.BRIDGE_STARTING, version=__version__, config_path=str(config_path))

    try:
        from gh_chat_bridge.config.loader import load_config

        config = load_config(config_path)
        log.info("configuration_loaded")
    except FileNotFoundError as e:
        log.error("configuration_file_not_found", path=str(config_path), error=str(e))
        return 1
    except ValueError as e:
        log.error("configuration_invalid", error=str(e))
        return 1

    from gh_chat_bridge.utils.logging import configure_logging

    configure_logging(
        level="DEBUG" if debug else config.logging.level,
        log_format=config.logging.format,
        file_path=config.logging.file.path if config.logging.file.enabled else None,
        file_enabled=config.logging.file.enabled,
    )

    if dry_run:
        for key, value in config_summary(config).items():
            print(f"{key}: {value}")
        log.info("dry_run_mode_config_valid")
        return 0

    import uvicorn

    from gh_chat_bridge.api.app import create_app

    try:
        app = create_app(config)
        uvicorn.run(
            app,
            host=config.server.host,
            port=config.server.port,
            log_config=None,
        )
    except Exception as e:
        log.exception("fatal_error", error=str(e))
        return 1

    return 0


def main() -> int:
    """Main entry point."""
    args = parse_args()

    setup_logging(debug=args.debug, log_format=args.format)

    try:
        return run_bridge(args.config, dry_run=args.dry_run, debug=args.debug)
    except KeyboardInterrupt:
        log.info("shutting_down_gracefully")
        return 0


if __name__ == "__main__":
    sys.exit(main())
