"""Logging helpers for the relay service."""
from __future__ import annotations

import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

FFMPEG_LOGGER_NAME = "rtmp_relay.ffmpeg"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_LOG_FILE: Optional[Path] = None

LevelLike = Union[int, str, None]


def resolve_level(value: LevelLike, default: int = logging.INFO) -> int:
    """Map ``"debug"``/``"INFO"``/``10`` style values to a logging level."""

    if value is None:
        return default
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    name = str(value).strip().upper()
    if name.isdigit():
        return int(name)
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else default


def _log_directory(log_dir: Optional[Path]) -> Path:
    if log_dir is not None:
        return Path(log_dir)
    env_dir = os.getenv("RELAY_LOG_DIR")
    if env_dir:
        return Path(env_dir).expanduser()
    return Path(__file__).resolve().parents[1] / "logs"


def _attach_handlers(prefix: str, log_dir: Optional[Path]) -> Path:
    directory = _log_directory(log_dir)
    directory.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    log_file = directory / f"{prefix}-{stamp}.log"

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    for handler in (logging.FileHandler(log_file, encoding="utf-8"), logging.StreamHandler(sys.stdout)):
        handler.setFormatter(formatter)
        root.addHandler(handler)
    return log_file


def configure_logging(
    prefix: str = "relay",
    *,
    level: LevelLike = None,
    ffmpeg_level: LevelLike = None,
    log_dir: Optional[Path] = None,
) -> Path:
    """Send relay logs to a timestamped file and stdout.

    Handlers are attached on the first call only; levels are applied on
    every call so an application built later can raise or lower them.
    ``ffmpeg_level`` controls the ``rtmp_relay.ffmpeg`` logger that carries
    encoder stderr lines.
    """

    global _LOG_FILE

    if _LOG_FILE is None:
        _LOG_FILE = _attach_handlers(prefix, log_dir)
        logging.getLogger().info("Logging to %s", _LOG_FILE)

    root_level = resolve_level(level)
    logging.getLogger().setLevel(root_level)
    logging.getLogger(FFMPEG_LOGGER_NAME).setLevel(resolve_level(ffmpeg_level, default=root_level))
    return _LOG_FILE


def current_log_file() -> Optional[Path]:
    """Return the most recent log file configured via ``configure_logging``."""

    return _LOG_FILE


__all__ = ["FFMPEG_LOGGER_NAME", "configure_logging", "current_log_file", "resolve_level"]
