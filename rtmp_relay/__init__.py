"""Browser-to-RTMP relay service."""
from __future__ import annotations

from .app import create_app
from .extensions import socketio
from .logging_config import current_log_file

__all__ = ["create_app", "current_log_file", "socketio"]
