"""Logging setup: JSON for production, human-readable text for development."""

import logging

_TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(log_format: str = "text", log_level: str = "INFO") -> None:
    """Install a single stream handler on the root logger.

    json: Structured JSON via python-json-logger.
    text: Human-readable format.

    Args:
        log_format: ``"text"`` or ``"json"``.
        log_level: Level name, e.g. ``"INFO"``.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # Remove existing handlers to avoid duplicate output
    root_logger.handlers.clear()

    handler = logging.StreamHandler()

    if log_format.lower() == "json":
        from pythonjsonlogger.json import JsonFormatter

        formatter: logging.Formatter = JsonFormatter(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
            rename_fields={
                "asctime": "timestamp",
                "levelname": "level",
                "name": "service",
            },
            static_fields={"app": "websy-ai"},
        )
    else:
        formatter = logging.Formatter(_TEXT_FORMAT)

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)


def mask_key(key: str) -> str:
    """Render a credential for logs without exposing the secret."""
    if len(key) <= 4:
        return "****"
    return f"****{key[-4:]}"
