"""Engine layer for the relay runtime."""
from __future__ import annotations

from .destination import StreamDestination, validate_stream_key, validate_stream_url
from .encoder import AudioEncodingOptions, EncoderSettings, VideoEncodingOptions
from .exceptions import DestinationError, ErrorKind, RelayError, SpawnError
from .process import FeedResult, TranscoderProcess, build_process_factory
from .registry import SessionRegistry
from .session import ERROR_EVENT, READY_EVENT, SessionState, StreamSession
from .status_snapshot import SessionStatus
from .stop_strategy import StopResult, StopStrategy

__all__ = [
    "AudioEncodingOptions",
    "DestinationError",
    "ERROR_EVENT",
    "EncoderSettings",
    "ErrorKind",
    "FeedResult",
    "READY_EVENT",
    "RelayError",
    "SessionRegistry",
    "SessionState",
    "SessionStatus",
    "SpawnError",
    "StopResult",
    "StopStrategy",
    "StreamDestination",
    "StreamSession",
    "TranscoderProcess",
    "VideoEncodingOptions",
    "build_process_factory",
    "validate_stream_key",
    "validate_stream_url",
]
