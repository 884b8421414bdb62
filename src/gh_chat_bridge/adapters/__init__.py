"""Concrete implementations of provider interfaces."""

from .sink import SlackSink, WebhookSink, create_sink

__all__ = [
    "SlackSink",
    "WebhookSink",
    "create_sink",
]
