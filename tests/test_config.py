from __future__ import annotations

import importlib
import logging

import pytest

from rtmp_relay import config as config_module
from rtmp_relay.app.extensions import resolve_cors_origins
from rtmp_relay.engine import StopStrategy


@pytest.fixture()
def reload_config(monkeypatch):
    def _reload(**env: str):
        for key, value in env.items():
            monkeypatch.setenv(key, value)
        return importlib.reload(config_module).build_default_config()

    yield _reload
    monkeypatch.undo()
    importlib.reload(config_module)


def test_defaults_match_relay_behaviour(reload_config, monkeypatch) -> None:
    for key in ("RELAY_PORT", "RELAY_FRAME_RATE", "RELAY_BUFFER_CHUNKS", "RELAY_ALLOWED_SCHEMES"):
        monkeypatch.delenv(key, raising=False)

    cfg = reload_config()

    assert cfg["RELAY_PORT"] == 8001
    assert cfg["RELAY_FRAME_RATE"] == 25
    assert cfg["RELAY_AUDIO_SAMPLE_RATE"] == 32000
    assert cfg["RELAY_BUFFER_CHUNKS"] == 100
    assert cfg["RELAY_ASYNC_HANDLERS"] is False
    assert cfg["RELAY_ALLOWED_SCHEMES"] == ("rtmp", "rtmps")


def test_environment_overrides_are_applied(reload_config) -> None:
    cfg = reload_config(
        RELAY_PORT="9001",
        RELAY_FRAME_RATE="30",
        RELAY_ALLOWED_SCHEMES="RTMPS",
        RELAY_STOP_GRACEFUL_TIMEOUT="1.5",
    )

    assert cfg["RELAY_PORT"] == 9001
    assert cfg["RELAY_FRAME_RATE"] == 30
    assert cfg["RELAY_ALLOWED_SCHEMES"] == ("rtmps",)
    assert cfg["RELAY_STOP_GRACEFUL_TIMEOUT"] == 1.5


def test_invalid_values_fall_back_to_defaults(reload_config) -> None:
    cfg = reload_config(RELAY_BUFFER_CHUNKS="lots", RELAY_PORT="0", RELAY_STOP_KILL_TIMEOUT="-1")

    assert cfg["RELAY_BUFFER_CHUNKS"] == 100
    assert cfg["RELAY_PORT"] == 8001
    assert cfg["RELAY_STOP_KILL_TIMEOUT"] == 2.0


def test_stop_strategy_from_config_tolerates_bad_values() -> None:
    strategy = StopStrategy.from_config({"RELAY_STOP_GRACEFUL_TIMEOUT": "soon"})

    assert strategy._graceful_timeout == 5.0


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (None, "*"),
        ("*", "*"),
        ("http://a.example, http://b.example", ["http://a.example", "http://b.example"]),
        (" , ", "*"),
    ],
)
def test_resolve_cors_origins(raw, expected) -> None:
    assert resolve_cors_origins(raw) == expected


def test_create_app_configures_log_file() -> None:
    from rtmp_relay import create_app, current_log_file

    create_app({"TESTING": True})

    log_file = current_log_file()
    assert log_file is not None
    assert log_file.name.startswith("relay-")
    assert log_file.parent.is_dir()


def test_log_levels_are_configurable() -> None:
    from rtmp_relay.logging_config import FFMPEG_LOGGER_NAME, configure_logging

    try:
        configure_logging(level="warning", ffmpeg_level="DEBUG")

        assert logging.getLogger().level == logging.WARNING
        assert logging.getLogger(FFMPEG_LOGGER_NAME).isEnabledFor(logging.DEBUG)
        assert not logging.getLogger("rtmp_relay.engine.process").isEnabledFor(logging.INFO)
    finally:
        configure_logging()


def test_create_app_applies_relay_log_level() -> None:
    from rtmp_relay import create_app
    from rtmp_relay.logging_config import FFMPEG_LOGGER_NAME, configure_logging

    try:
        create_app({"TESTING": True, "RELAY_LOG_LEVEL": "DEBUG", "RELAY_FFMPEG_LOG_LEVEL": "WARNING"})

        assert logging.getLogger("rtmp_relay.engine.process").isEnabledFor(logging.DEBUG)
        assert not logging.getLogger(FFMPEG_LOGGER_NAME).isEnabledFor(logging.INFO)
    finally:
        configure_logging()


@pytest.mark.parametrize(("raw", "expected"), [("debug", logging.DEBUG), ("30", 30), (None, logging.INFO), ("loud", logging.INFO)])
def test_resolve_level(raw, expected) -> None:
    from rtmp_relay.logging_config import resolve_level

    assert resolve_level(raw) == expected
