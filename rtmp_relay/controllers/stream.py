"""Socket.IO events that drive per-connection stream sessions."""
from __future__ import annotations

from typing import Any, Optional

from flask import current_app, request

from ..engine import SessionRegistry
from ..extensions import socketio

START_EVENT = "start:stream"
CHUNK_EVENT = "video-chunk"
STOP_EVENT = "stop:stream"


def _registry() -> SessionRegistry:
    registry: SessionRegistry = current_app.extensions["session_registry"]
    return registry


@socketio.on("connect")
def handle_socket_connect(auth: Optional[Any] = None):
    current_app.logger.info("Socket connected: %s", request.sid)
    _registry().get_or_create(request.sid)


@socketio.on(START_EVENT)
def handle_start_stream(payload: Optional[Any] = None):
    current_app.logger.info("Received %s from %s", START_EVENT, request.sid)
    session = _registry().get_or_create(request.sid)
    session.configure(payload)


@socketio.on(CHUNK_EVENT)
def handle_video_chunk(chunk: Any = None):
    session = _registry().get(request.sid)
    if session is None:
        return
    session.handle_chunk(chunk)


@socketio.on(STOP_EVENT)
def handle_stop_stream(*_args: Any):
    current_app.logger.info("Received %s from %s", STOP_EVENT, request.sid)
    session = _registry().get(request.sid)
    if session is not None:
        session.stop()


@socketio.on("disconnect")
def handle_socket_disconnect(*_args: Any):
    current_app.logger.info("Socket disconnected: %s", request.sid)
    _registry().disconnect(request.sid)


__all__ = ["CHUNK_EVENT", "START_EVENT", "STOP_EVENT"]
