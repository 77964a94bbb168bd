"""Relay application factory."""
from __future__ import annotations

from typing import Any, Mapping, Optional

from flask import Flask

from .bootstrap import init_logging, load_configuration
from .extensions import (
    configure_cors,
    init_session_registry,
    init_socketio,
    register_blueprints,
    resolve_cors_origins,
)
from ..engine.process import ProcessFactory


def create_app(
    config: Optional[Mapping[str, Any]] = None,
    *,
    process_factory: Optional[ProcessFactory] = None,
) -> Flask:
    """Create and configure the relay Flask application."""

    app = Flask(__name__)
    load_configuration(app, config)
    init_logging(app.config)

    init_session_registry(app, process_factory=process_factory)

    cors_allowed = resolve_cors_origins(app.config.get("RELAY_CORS_ORIGIN"))
    init_socketio(app, cors_allowed)
    register_blueprints(app)
    configure_cors(app, cors_allowed)

    return app


__all__ = ["create_app"]
