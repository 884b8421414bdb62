"""GitHub webhook to chat bridge.

Receives GitHub webhook deliveries, filters out automation, and forwards
human activity and newly labeled good-first-issues to chat channels.
"""

from gh_chat_bridge._version import __version__

__all__ = ["__version__"]
