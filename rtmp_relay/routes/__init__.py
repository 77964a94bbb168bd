"""HTTP routes exposed by the relay service."""
from __future__ import annotations

from .status import status_bp

API_BLUEPRINTS = (status_bp,)

__all__ = ["API_BLUEPRINTS", "status_bp"]
