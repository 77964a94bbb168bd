"""Configuration helpers for the relay service."""
from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

from dotenv import find_dotenv, load_dotenv

from .utils import coerce_float, to_bool, to_csv_tuple


def _ensure_dotenv_loaded() -> None:
    dotenv_path = find_dotenv(usecwd=True)
    if dotenv_path:
        load_dotenv(dotenv_path, override=False)


_ensure_dotenv_loaded()

LOGGER = logging.getLogger(__name__)


def _env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None:
        return default
    trimmed = raw.strip()
    return trimmed or default


def _env_int(name: str, default: int, minimum: Optional[int] = None) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        LOGGER.warning("Ignoring invalid %s=%r; using %s", name, raw, default)
        return default
    if minimum is not None and value < minimum:
        LOGGER.warning("Ignoring out-of-range %s=%r; using %s", name, raw, default)
        return default
    return value


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return coerce_float(raw, default, minimum=0.0)


DEFAULT_HOST = _env_str("RELAY_HOST", "0.0.0.0")
DEFAULT_PORT = _env_int("RELAY_PORT", 8001, minimum=1)
DEFAULT_CORS_ORIGIN = _env_str("RELAY_CORS_ORIGIN", "*")
DEFAULT_ASYNC_HANDLERS = to_bool(os.getenv("RELAY_ASYNC_HANDLERS"), default=False)
DEFAULT_MAX_MESSAGE_BYTES = _env_int("RELAY_MAX_MESSAGE_BYTES", 10 * 1024 * 1024, minimum=1024)

DEFAULT_FFMPEG_BINARY = _env_str("RELAY_FFMPEG_BINARY", "ffmpeg")
DEFAULT_FRAME_RATE = _env_int("RELAY_FRAME_RATE", 25, minimum=1)
DEFAULT_VIDEO_CODEC = _env_str("RELAY_VIDEO_CODEC", "libx264")
DEFAULT_VIDEO_PRESET = _env_str("RELAY_VIDEO_PRESET", "ultrafast")
DEFAULT_VIDEO_TUNE = _env_str("RELAY_VIDEO_TUNE", "zerolatency")
DEFAULT_VIDEO_CRF = _env_int("RELAY_VIDEO_CRF", 25, minimum=0)
DEFAULT_PIXEL_FORMAT = _env_str("RELAY_PIXEL_FORMAT", "yuv420p")
DEFAULT_VIDEO_PROFILE = _env_str("RELAY_VIDEO_PROFILE", "main")
DEFAULT_VIDEO_LEVEL = _env_str("RELAY_VIDEO_LEVEL", "3.1")
DEFAULT_AUDIO_CODEC = _env_str("RELAY_AUDIO_CODEC", "aac")
DEFAULT_AUDIO_BITRATE = _env_str("RELAY_AUDIO_BITRATE", "128k")
DEFAULT_AUDIO_SAMPLE_RATE = _env_int("RELAY_AUDIO_SAMPLE_RATE", 32000, minimum=1)

DEFAULT_BUFFER_CHUNKS = _env_int("RELAY_BUFFER_CHUNKS", 100, minimum=1)
DEFAULT_STDERR_TAIL_LINES = _env_int("RELAY_STDERR_TAIL_LINES", 40, minimum=1)
DEFAULT_STOP_GRACEFUL_TIMEOUT = _env_float("RELAY_STOP_GRACEFUL_TIMEOUT", 5.0)
DEFAULT_STOP_TERMINATE_TIMEOUT = _env_float("RELAY_STOP_TERMINATE_TIMEOUT", 5.0)
DEFAULT_STOP_KILL_TIMEOUT = _env_float("RELAY_STOP_KILL_TIMEOUT", 2.0)
DEFAULT_ALLOWED_SCHEMES = to_csv_tuple(os.getenv("RELAY_ALLOWED_SCHEMES"), ("rtmp", "rtmps"))
DEFAULT_LOG_LEVEL = _env_str("RELAY_LOG_LEVEL", "INFO")
DEFAULT_FFMPEG_LOG_LEVEL = _env_str("RELAY_FFMPEG_LOG_LEVEL", "INFO")


def build_default_config() -> Dict[str, Any]:
    """Return the base configuration mapping for the relay service."""

    cfg: Dict[str, Any] = {
        "RELAY_HOST": DEFAULT_HOST,
        "RELAY_PORT": DEFAULT_PORT,
        "RELAY_CORS_ORIGIN": DEFAULT_CORS_ORIGIN,
        "RELAY_ASYNC_HANDLERS": DEFAULT_ASYNC_HANDLERS,
        "RELAY_MAX_MESSAGE_BYTES": DEFAULT_MAX_MESSAGE_BYTES,
        "RELAY_FFMPEG_BINARY": DEFAULT_FFMPEG_BINARY,
        "RELAY_FRAME_RATE": DEFAULT_FRAME_RATE,
        "RELAY_VIDEO_CODEC": DEFAULT_VIDEO_CODEC,
        "RELAY_VIDEO_PRESET": DEFAULT_VIDEO_PRESET,
        "RELAY_VIDEO_TUNE": DEFAULT_VIDEO_TUNE,
        "RELAY_VIDEO_CRF": DEFAULT_VIDEO_CRF,
        "RELAY_PIXEL_FORMAT": DEFAULT_PIXEL_FORMAT,
        "RELAY_VIDEO_PROFILE": DEFAULT_VIDEO_PROFILE,
        "RELAY_VIDEO_LEVEL": DEFAULT_VIDEO_LEVEL,
        "RELAY_AUDIO_CODEC": DEFAULT_AUDIO_CODEC,
        "RELAY_AUDIO_BITRATE": DEFAULT_AUDIO_BITRATE,
        "RELAY_AUDIO_SAMPLE_RATE": DEFAULT_AUDIO_SAMPLE_RATE,
        "RELAY_BUFFER_CHUNKS": DEFAULT_BUFFER_CHUNKS,
        "RELAY_STDERR_TAIL_LINES": DEFAULT_STDERR_TAIL_LINES,
        "RELAY_STOP_GRACEFUL_TIMEOUT": DEFAULT_STOP_GRACEFUL_TIMEOUT,
        "RELAY_STOP_TERMINATE_TIMEOUT": DEFAULT_STOP_TERMINATE_TIMEOUT,
        "RELAY_STOP_KILL_TIMEOUT": DEFAULT_STOP_KILL_TIMEOUT,
        "RELAY_ALLOWED_SCHEMES": DEFAULT_ALLOWED_SCHEMES,
        "RELAY_LOG_LEVEL": DEFAULT_LOG_LEVEL,
        "RELAY_FFMPEG_LOG_LEVEL": DEFAULT_FFMPEG_LOG_LEVEL,
    }
    return cfg


__all__ = ["build_default_config"]
