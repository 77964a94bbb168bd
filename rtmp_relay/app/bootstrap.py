"""Bootstrap helpers for the relay Flask application."""
from __future__ import annotations

from typing import Any, Mapping, Optional

from flask import Flask

from ..config import build_default_config
from ..logging_config import configure_logging


def init_logging(config: Mapping[str, Any]) -> None:
    """Configure logging using the levels in ``config``."""

    configure_logging(
        "relay",
        level=config.get("RELAY_LOG_LEVEL"),
        ffmpeg_level=config.get("RELAY_FFMPEG_LOG_LEVEL"),
    )


def load_configuration(app: Flask, overrides: Optional[Mapping[str, Any]] = None) -> None:
    """Populate the default configuration values on the Flask app."""

    app.config.from_mapping(build_default_config())
    if overrides:
        app.config.from_mapping(dict(overrides))


__all__ = ["init_logging", "load_configuration"]
