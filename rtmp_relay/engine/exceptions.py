"""Custom exceptions and error tags raised by the relay engine."""
from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Stable tags surfaced to clients in ``stream:error`` payloads."""

    SPAWN_ERROR = "spawn_error"
    UNEXPECTED_EXIT = "unexpected_exit"
    BACKPRESSURE = "backpressure"
    INVALID_DESTINATION = "invalid_destination"


class RelayError(RuntimeError):
    """Base error for the relay engine."""

    kind: ErrorKind


class DestinationError(RelayError, ValueError):
    """Raised when a client supplied stream URL or key is unsafe or malformed."""

    kind = ErrorKind.INVALID_DESTINATION


class SpawnError(RelayError):
    """Raised when the encoder subprocess cannot be launched."""

    kind = ErrorKind.SPAWN_ERROR


__all__ = ["DestinationError", "ErrorKind", "RelayError", "SpawnError"]
