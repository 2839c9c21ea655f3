"""Websy AI chat orchestrator."""

__version__ = "0.1.0"
