"""API route handlers for Websy AI."""

from websy.api.routes import chat as chat

__all__ = ["chat"]
