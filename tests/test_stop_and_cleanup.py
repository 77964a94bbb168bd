from __future__ import annotations

import logging
import signal
import sys
import threading
import time
from pathlib import Path

import pytest

from rtmp_relay.engine import FeedResult, SpawnError, StopStrategy, TranscoderProcess

pytestmark = pytest.mark.skipif(sys.platform.startswith("win"), reason="POSIX signals required")

SLEEPER = "import time\ntime.sleep(30)\n"


def _python(script: str, *args: str) -> list[str]:
    return [sys.executable, "-c", script, *args]


def _wait_for(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class ExitRecorder:
    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.fired = threading.Event()

    def __call__(self, returncode, stderr_tail) -> None:
        self.calls.append((returncode, stderr_tail))
        self.fired.set()


def test_chunks_reach_stdin_in_order(tmp_path: Path) -> None:
    chunks = [bytes([index]) * 512 for index in range(64)]
    expected = b"".join(chunks)
    target = tmp_path / "received.bin"
    script = (
        "import sys\n"
        f"data = sys.stdin.buffer.read({len(expected)})\n"
        "with open(sys.argv[1], 'wb') as fh:\n"
        "    fh.write(data)\n"
    )
    recorder = ExitRecorder()
    process = TranscoderProcess(_python(script, str(target)), on_exit=recorder, buffer_chunks=128)
    process.start()

    results = [process.feed(chunk) for chunk in chunks]

    assert results == [FeedResult.ACCEPTED] * len(chunks)
    assert process.wait(10) == 0
    assert _wait_for(lambda: process.bytes_written == len(expected))
    assert recorder.fired.wait(5)
    assert target.read_bytes() == expected


def test_exit_notification_fires_once_with_stderr_tail() -> None:
    script = "import sys\nsys.stderr.write('rtmp://example.com: Connection refused\\n')\nsys.exit(3)\n"
    recorder = ExitRecorder()
    process = TranscoderProcess(_python(script), on_exit=recorder)
    process.start()

    assert process.wait(10) == 3
    assert recorder.fired.wait(5)
    time.sleep(0.05)
    assert recorder.calls == [(3, "rtmp://example.com: Connection refused")]
    assert process.terminated
    assert process.feed(b"late") is FeedResult.TERMINATED
    assert process.stop() is False


def test_stop_is_idempotent_and_closes_input() -> None:
    recorder = ExitRecorder()
    process = TranscoderProcess(_python(SLEEPER), on_exit=recorder)
    process.start()

    assert process.stop() is True
    assert process.stop() is False
    assert process.input_closed
    assert process.stop_requested
    assert process.feed(b"after stop") is FeedResult.TERMINATED
    assert process.wait(10) is not None
    assert recorder.fired.wait(5)
    assert len(recorder.calls) == 1


def test_buffer_is_bounded_when_encoder_stalls() -> None:
    process = TranscoderProcess(_python(SLEEPER), buffer_chunks=100)
    process.start()
    try:
        results = [process.feed(b"\x00" * 4096) for _ in range(10_000)]

        assert FeedResult.BACKPRESSURE in results
        assert results.count(FeedResult.ACCEPTED) < 10_000
        assert process.buffered <= 100
    finally:
        process.stop()
        process.wait(10)


def test_missing_binary_raises_spawn_error(tmp_path: Path) -> None:
    recorder = ExitRecorder()
    process = TranscoderProcess([str(tmp_path / "no-such-ffmpeg")], on_exit=recorder)

    with pytest.raises(SpawnError) as excinfo:
        process.start()

    assert excinfo.value.kind.value == "spawn_error"
    assert recorder.calls == []
    assert process.feed(b"chunk") is FeedResult.TERMINATED


def test_stop_strategy_escalates_when_sigint_is_ignored() -> None:
    script = (
        "import signal, sys, time\n"
        "signal.signal(signal.SIGINT, signal.SIG_IGN)\n"
        "sys.stderr.write('ready\\n')\n"
        "sys.stderr.flush()\n"
        "time.sleep(30)\n"
    )
    process = TranscoderProcess(_python(script))
    process.start()
    assert _wait_for(lambda: "ready" in process.stderr_tail)

    result = StopStrategy(graceful_timeout=0.2, terminate_timeout=5.0, kill_timeout=2.0).shutdown(process)

    assert result.escalated is True
    assert result.returncode == -signal.SIGTERM
    assert not process.running


def test_stop_strategy_graceful_path_does_not_escalate() -> None:
    process = TranscoderProcess(_python(SLEEPER))
    process.start()

    result = StopStrategy(graceful_timeout=5.0).shutdown(process)

    assert result.escalated is False
    assert result.returncode is not None


def test_carriage_return_progress_fills_tail_while_running() -> None:
    script = (
        "import sys, time\n"
        "for frame in range(200):\n"
        "    sys.stderr.write(f'frame={frame:5d} fps=25 q=23.0 size=  1024kB\\r')\n"
        "sys.stderr.flush()\n"
        "time.sleep(30)\n"
    )
    process = TranscoderProcess(_python(script), stderr_tail_lines=40)
    process.start()
    try:
        assert _wait_for(lambda: "frame=  199" in process.stderr_tail)
        assert process.running
        lines = process.stderr_tail.splitlines()
        assert len(lines) == 40
        assert lines[0].startswith("frame=  160")
    finally:
        process.stop()
        process.wait(10)


def test_unterminated_stderr_is_capped() -> None:
    script = "import sys, time\nsys.stderr.write('x' * 20000)\nsys.stderr.flush()\ntime.sleep(30)\n"
    process = TranscoderProcess(_python(script))
    process.start()
    try:
        assert _wait_for(lambda: process.stderr_tail != "")
        assert all(len(line) <= 8192 for line in process.stderr_tail.splitlines())
    finally:
        process.stop()
        process.wait(10)


def test_stderr_lines_are_logged_on_ffmpeg_logger(caplog) -> None:
    caplog.set_level(logging.DEBUG, logger="rtmp_relay.ffmpeg")
    script = (
        "import sys\n"
        "sys.stderr.write('frame=    1 fps=25\\r')\n"
        "sys.stderr.write('rtmp://example.com/live: Connection refused\\n')\n"
    )
    recorder = ExitRecorder()
    process = TranscoderProcess(_python(script), on_exit=recorder)
    process.start()
    assert recorder.fired.wait(10)

    records = [(record.levelno, record.getMessage()) for record in caplog.records if record.name == "rtmp_relay.ffmpeg"]
    assert [level for level, _ in records] == [logging.DEBUG, logging.INFO]
    assert records[1][1].endswith("rtmp://example.com/live: Connection refused")
