"""Core pipeline components.

- signature: Webhook signature verification
- parser: Decodes webhook bodies into typed events
- classifier: Resolves human vs automation actors
- dedup: Time-windowed duplicate suppression
- router: Decides which channels receive which message
- dispatcher: Delivers messages with retry and backoff
- pipeline: Wires the above together per event
"""

from gh_chat_bridge.core.classifier import ActorClassifier, classify
from gh_chat_bridge.core.dedup import DedupKey, DedupResult, DedupStore
from gh_chat_bridge.core.dispatcher import Dispatcher
from gh_chat_bridge.core.parser import parse_event
from gh_chat_bridge.core.pipeline import EventPipeline
from gh_chat_bridge.core.router import Router
from gh_chat_bridge.core.signature import SignatureStatus, compute_signature, verify_signature

__all__ = [
    "ActorClassifier",
    "DedupKey",
    "DedupResult",
    "DedupStore",
    "Dispatcher",
    "EventPipeline",
    "Router",
    "SignatureStatus",
    "classify",
    "compute_signature",
    "parse_event",
    "verify_signature",
]
