"""Protocol definitions for pluggable adapters."""

from .sink import ChannelSink

__all__ = ["ChannelSink"]
