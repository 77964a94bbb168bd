from __future__ import annotations

import itertools
import os
import tempfile
import threading
from pathlib import Path
from typing import Callable, List, Optional

import pytest

os.environ.setdefault("RELAY_LOG_DIR", str(Path(tempfile.gettempdir()) / "rtmp-relay-test-logs"))

from rtmp_relay.engine import FeedResult, SpawnError, StopStrategy, StreamDestination, StreamSession  # noqa: E402

_PIDS = itertools.count(40_000)


class FakeProcess:
    """In-memory stand-in for :class:`TranscoderProcess`.

    Accepted chunks are kept in ``chunks`` and never drained, so ``capacity``
    behaves like a stalled encoder.
    """

    def __init__(
        self,
        destination: StreamDestination,
        on_exit: Callable[[Optional[int], str], None],
        *,
        events: List[tuple],
        capacity: int = 100,
        fail_spawn: bool = False,
        exit_on_stop: bool = True,
        exit_on_terminate: bool = True,
        exit_on_kill: bool = True,
    ) -> None:
        self.destination = destination
        self.on_exit = on_exit
        self.events = events
        self.capacity = capacity
        self.fail_spawn = fail_spawn
        self.exit_on_stop = exit_on_stop
        self.exit_on_terminate = exit_on_terminate
        self.exit_on_kill = exit_on_kill
        self.pid = next(_PIDS)
        self.chunks: List[bytes] = []
        self.signals: List[str] = []
        self.started = False
        self.returncode: Optional[int] = None
        self.exit_calls = 0
        self._exited = threading.Event()
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self.started and not self._exited.is_set()

    @property
    def buffered(self) -> int:
        return len(self.chunks)

    @property
    def stop_requested(self) -> bool:
        return "SIGINT" in self.signals

    def start(self) -> None:
        self.events.append(("spawn", self.destination.url))
        if self.fail_spawn:
            raise SpawnError("Failed to launch ffmpeg: [Errno 2] No such file or directory")
        self.started = True

    def feed(self, data: bytes) -> FeedResult:
        with self._lock:
            if not self.running or self.signals:
                return FeedResult.TERMINATED
            if len(self.chunks) >= self.capacity:
                return FeedResult.BACKPRESSURE
            self.chunks.append(bytes(data))
            return FeedResult.ACCEPTED

    def stop(self) -> bool:
        with self._lock:
            if not self.running or "SIGINT" in self.signals:
                return False
            self.signals.append("SIGINT")
            self.events.append(("stop", self.destination.url))
        if self.exit_on_stop:
            self.exit(255)
        return True

    def terminate(self) -> bool:
        if not self.running:
            return False
        self.signals.append("SIGTERM")
        if self.exit_on_terminate:
            self.exit(-15)
        return True

    def kill(self) -> bool:
        if not self.running:
            return False
        self.signals.append("SIGKILL")
        if self.exit_on_kill:
            self.exit(-9)
        return True

    def wait(self, timeout: Optional[float] = None) -> Optional[int]:
        if not self.started:
            return None
        if self._exited.wait(timeout):
            return self.returncode
        return None

    def exit(self, returncode: int, stderr_tail: str = "") -> None:
        with self._lock:
            if self._exited.is_set():
                return
            self.returncode = returncode
            self._exited.set()
        self.exit_calls += 1
        self.on_exit(returncode, stderr_tail)


class FakeProcessFactory:
    def __init__(self, **options) -> None:
        self.options = options
        self.created: List[FakeProcess] = []
        self.events: List[tuple] = []

    def __call__(self, destination: StreamDestination, on_exit) -> FakeProcess:
        process = FakeProcess(destination, on_exit, events=self.events, **self.options)
        self.created.append(process)
        return process


class Recorder:
    """Collects ``(event, payload)`` notifications emitted by a session."""

    def __init__(self) -> None:
        self.items: List[tuple] = []

    def __call__(self, event: str, payload) -> None:
        self.items.append((event, payload))

    def names(self) -> List[str]:
        return [event for event, _ in self.items]

    def errors(self) -> List[dict]:
        return [payload for event, payload in self.items if event == "stream:error"]


@pytest.fixture()
def process_factory() -> FakeProcessFactory:
    return FakeProcessFactory()


@pytest.fixture()
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture()
def fast_stopper() -> StopStrategy:
    return StopStrategy(graceful_timeout=0.05, terminate_timeout=0.05, kill_timeout=0.05)


@pytest.fixture()
def make_session(recorder: Recorder, fast_stopper: StopStrategy):
    def _make(factory: FakeProcessFactory, session_id: str = "sid-1") -> StreamSession:
        return StreamSession(
            session_id,
            process_factory=factory,
            notify=recorder,
            stop_strategy=fast_stopper,
        )

    return _make


@pytest.fixture()
def session(make_session, process_factory: FakeProcessFactory) -> StreamSession:
    return make_session(process_factory)


@pytest.fixture()
def destination_payload() -> dict:
    return {"streamUrl": "rtmp://example.com/live", "streamKey": "abc123"}
