"""Extension wiring for the relay Flask application."""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Optional, Sequence

from flask import Flask, Response, request

from ..controllers import stream as _stream_controller  # noqa: F401  registers socket handlers
from ..engine import (
    EncoderSettings,
    SessionRegistry,
    StopStrategy,
    StreamSession,
    build_process_factory,
)
from ..engine.process import ProcessFactory
from ..extensions import socketio
from ..utils import coerce_int, to_bool, to_csv_tuple

LOGGER = logging.getLogger(__name__)


def resolve_cors_origins(raw_origin: Optional[str]) -> Sequence[str] | str:
    """Return a Socket.IO compatible CORS configuration."""

    if not raw_origin or raw_origin.strip() == "*":
        return "*"
    candidates: Iterable[str] = (fragment.strip() for fragment in raw_origin.split(","))
    allowed = [origin for origin in candidates if origin]
    return allowed or "*"


def init_socketio(app: Flask, cors_allowed: Sequence[str] | str) -> None:
    """Configure Socket.IO for ordered per-connection event handling."""

    socketio.init_app(
        app,
        cors_allowed_origins=cors_allowed,
        async_mode="threading",
        async_handlers=to_bool(app.config.get("RELAY_ASYNC_HANDLERS"), default=False),
        max_http_buffer_size=coerce_int(app.config.get("RELAY_MAX_MESSAGE_BYTES"), 10 * 1024 * 1024, minimum=1024),
    )


def _session_notifier(session_id: str):
    def _emit(event: str, payload: Optional[Dict[str, Any]]) -> None:
        if payload is None:
            socketio.emit(event, to=session_id)
        else:
            socketio.emit(event, payload, to=session_id)

    return _emit


def init_session_registry(
    app: Flask,
    *,
    process_factory: Optional[ProcessFactory] = None,
) -> SessionRegistry:
    """Build the encoder settings, stop strategy and session registry."""

    settings = EncoderSettings.from_config(app.config)
    if process_factory is None:
        process_factory = build_process_factory(
            settings,
            buffer_chunks=coerce_int(app.config.get("RELAY_BUFFER_CHUNKS"), 100, minimum=1),
            stderr_tail_lines=coerce_int(app.config.get("RELAY_STDERR_TAIL_LINES"), 40, minimum=1),
        )
    stop_strategy = StopStrategy.from_config(app.config)
    allowed_schemes = to_csv_tuple(app.config.get("RELAY_ALLOWED_SCHEMES"), ("rtmp", "rtmps"))

    def _session_factory(session_id: str) -> StreamSession:
        return StreamSession(
            session_id,
            process_factory=process_factory,
            notify=_session_notifier(session_id),
            stop_strategy=stop_strategy,
            allowed_schemes=allowed_schemes,
        )

    registry = SessionRegistry(_session_factory)
    app.extensions["encoder_settings"] = settings
    app.extensions["session_registry"] = registry
    LOGGER.info("Relay encoder binary: %s (allowed schemes: %s)", settings.ffmpeg_binary, ", ".join(allowed_schemes))
    return registry


def register_blueprints(app: Flask) -> None:
    """Register HTTP blueprints for the relay surface."""

    from ..routes import API_BLUEPRINTS

    for blueprint in API_BLUEPRINTS:
        app.register_blueprint(blueprint)


def configure_cors(app: Flask, cors_allowed: Sequence[str] | str) -> None:
    """Attach CORS headers to the read-only HTTP routes."""

    allow_any = cors_allowed == "*"
    allowed = frozenset(() if allow_any else cors_allowed)

    @app.after_request
    def add_cors_headers(response: Response) -> Response:
        origin = request.headers.get("Origin")
        if origin:
            response.headers.add("Vary", "Origin")
        if allow_any:
            response.headers["Access-Control-Allow-Origin"] = origin or "*"
        elif origin in allowed:
            response.headers["Access-Control-Allow-Origin"] = origin
        else:
            return response
        response.headers.setdefault("Access-Control-Allow-Methods", "GET,OPTIONS")
        response.headers.setdefault("Access-Control-Allow-Headers", "Content-Type")
        return response


__all__ = [
    "configure_cors",
    "init_session_registry",
    "init_socketio",
    "register_blueprints",
    "resolve_cors_origins",
]
