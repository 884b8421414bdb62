"""HTTP layer: the FastAPI application receiving GitHub webhooks."""

from gh_chat_bridge.api.app import create_app

__all__ = ["create_app"]
