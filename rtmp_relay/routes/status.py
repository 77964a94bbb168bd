"""Health and session introspection routes."""
from __future__ import annotations

from datetime import datetime, timezone
from http import HTTPStatus

from flask import Blueprint, current_app, jsonify

from ..engine import SessionRegistry

status_bp = Blueprint("relay_status", __name__)


def _registry() -> SessionRegistry:
    registry: SessionRegistry = current_app.extensions["session_registry"]
    return registry


@status_bp.route("/health", methods=["GET"])
def health_endpoint():
    payload = {
        "status": "ok",
        "service": "rtmp-relay",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "sessions": len(_registry()),
    }
    return jsonify(payload), HTTPStatus.OK


@status_bp.route("/sessions", methods=["GET"])
def sessions_endpoint():
    sessions = [status.to_dict() for status in _registry().snapshot()]
    return jsonify({"sessions": sessions}), HTTPStatus.OK


__all__ = ["status_bp"]
