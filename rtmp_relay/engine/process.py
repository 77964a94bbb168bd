"""Wrapper around a single FFmpeg relay subprocess."""
from __future__ import annotations

import logging
import queue
import re
import signal
import subprocess
import threading
from collections import deque
from enum import Enum
from typing import Callable, List, Optional, Sequence

from .destination import StreamDestination
from .encoder import EncoderSettings
from .exceptions import SpawnError
from ..logging_config import FFMPEG_LOGGER_NAME

LOGGER = logging.getLogger(__name__)
FFMPEG_LOGGER = logging.getLogger(FFMPEG_LOGGER_NAME)

ExitCallback = Callable[[Optional[int], str], None]
ProcessFactory = Callable[[StreamDestination, ExitCallback], "TranscoderProcess"]

_END_OF_INPUT = object()

_STDERR_READ_SIZE = 4096
_MAX_PENDING_LINE = 8192
_LINE_BREAK = re.compile(rb"\r\n|\r|\n")
_PROGRESS_PREFIXES = ("frame=", "size=")


class FeedResult(str, Enum):
    """Outcome of handing one chunk to the encoder."""

    ACCEPTED = "accepted"
    BACKPRESSURE = "backpressure"
    TERMINATED = "terminated"


class TranscoderProcess:
    """Own one encoder subprocess and pipe chunks into its stdin.

    ``feed`` never blocks: chunks go onto a bounded queue drained by a
    writer thread. When the queue is full the newest chunk is dropped and
    ``FeedResult.BACKPRESSURE`` is returned. A watcher thread reaps the
    process and fires ``on_exit(returncode, stderr_tail)`` exactly once.
    """

    def __init__(
        self,
        command: Sequence[str],
        *,
        on_exit: Optional[ExitCallback] = None,
        buffer_chunks: int = 100,
        stderr_tail_lines: int = 40,
        name: str = "encoder",
    ) -> None:
        if not command:
            raise ValueError("command must not be empty")
        self._command = [str(part) for part in command]
        self._on_exit = on_exit
        self._name = name
        self._lock = threading.Lock()
        self._queue: "queue.Queue[object]" = queue.Queue(maxsize=max(1, int(buffer_chunks)))
        self._tail_lock = threading.Lock()
        self._stderr_tail: deque[str] = deque(maxlen=max(1, int(stderr_tail_lines)))
        self._process: Optional[subprocess.Popen[bytes]] = None
        self._threads: List[threading.Thread] = []
        self._exited = threading.Event()
        self._returncode: Optional[int] = None
        self._input_closed = False
        self._stop_requested = False
        self._bytes_written = 0

    # ------------------------------------------------------------------
    # State accessors
    # ------------------------------------------------------------------
    @property
    def pid(self) -> Optional[int]:
        process = self._process
        return process.pid if process else None

    @property
    def returncode(self) -> Optional[int]:
        return self._returncode

    @property
    def running(self) -> bool:
        return self._process is not None and not self._exited.is_set()

    @property
    def terminated(self) -> bool:
        return self._exited.is_set()

    @property
    def input_closed(self) -> bool:
        return self._input_closed

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    @property
    def buffered(self) -> int:
        """Number of chunks queued but not yet written to stdin."""

        return self._queue.qsize()

    @property
    def bytes_written(self) -> int:
        return self._bytes_written

    @property
    def stderr_tail(self) -> str:
        with self._tail_lock:
            return "\n".join(self._stderr_tail)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self) -> None:
        """Launch the subprocess; raises :class:`SpawnError` on failure."""

        with self._lock:
            if self._process is not None:
                raise RuntimeError(f"{self._name} already started")
            try:
                process = subprocess.Popen(
                    self._command,
                    stdin=subprocess.PIPE,
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.PIPE,
                )
            except (OSError, ValueError) as exc:
                raise SpawnError(f"Failed to launch {self._command[0]}: {exc}") from exc
            self._process = process

        LOGGER.info("Started %s (pid=%s)", self._name, process.pid)
        stderr_thread = self._spawn_thread(self._read_stderr, process, role="stderr")
        self._spawn_thread(self._write_loop, process, role="writer")
        self._spawn_thread(self._watch, process, stderr_thread, role="watcher")

    def feed(self, data: bytes) -> FeedResult:
        """Queue ``data`` for the encoder's stdin without blocking."""

        with self._lock:
            if self._process is None or self._input_closed or self._exited.is_set():
                return FeedResult.TERMINATED
            try:
                self._queue.put_nowait(bytes(data))
            except queue.Full:
                return FeedResult.BACKPRESSURE
        return FeedResult.ACCEPTED

    def stop(self) -> bool:
        """Discard buffered input, close stdin and send SIGINT.

        Idempotent. Returns ``True`` only for the call that delivered the
        signal; exit is observed asynchronously through ``on_exit``.
        """

        with self._lock:
            process = self._process
            if process is None or self._stop_requested or self._exited.is_set():
                return False
            self._stop_requested = True
            self._close_input_locked()
        return self._signal(process, signal.SIGINT)

    def terminate(self) -> bool:
        process = self._process
        if process is None or self._exited.is_set():
            return False
        return self._signal(process, signal.SIGTERM)

    def kill(self) -> bool:
        process = self._process
        if process is None or self._exited.is_set():
            return False
        return self._signal(process, signal.SIGKILL)

    def wait(self, timeout: Optional[float] = None) -> Optional[int]:
        """Block until the exit notification; ``None`` on timeout."""

        if self._process is None:
            return None
        if self._exited.wait(timeout):
            return self._returncode
        return None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _spawn_thread(self, target, *args, role: str) -> threading.Thread:
        thread = threading.Thread(
            target=target,
            args=args,
            name=f"{self._name}-{role}",
            daemon=True,
        )
        self._threads.append(thread)
        thread.start()
        return thread

    def _signal(self, process: subprocess.Popen[bytes], signum: int) -> bool:
        try:
            process.send_signal(signum)
        except ProcessLookupError:
            return False
        except OSError:  # pragma: no cover - system dependent
            LOGGER.exception("Failed to send %s to %s (pid=%s)", signal.Signals(signum).name, self._name, process.pid)
            return False
        LOGGER.info("Sent %s to %s (pid=%s)", signal.Signals(signum).name, self._name, process.pid)
        return True

    def _close_input_locked(self) -> None:
        if self._input_closed:
            return
        self._input_closed = True
        discarded = 0
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                break
            discarded += 1
        if discarded:
            LOGGER.debug("Discarded %d buffered chunk(s) for %s", discarded, self._name)
        self._queue.put_nowait(_END_OF_INPUT)

    def _write_loop(self, process: subprocess.Popen[bytes]) -> None:
        stdin = process.stdin
        assert stdin is not None
        try:
            while True:
                item = self._queue.get()
                if item is _END_OF_INPUT:
                    break
                try:
                    stdin.write(item)  # type: ignore[arg-type]
                    stdin.flush()
                except (BrokenPipeError, ValueError, OSError) as exc:
                    LOGGER.debug("Write to %s stdin failed: %s", self._name, exc)
                    break
                self._bytes_written += len(item)  # type: ignore[arg-type]
        finally:
            with self._lock:
                self._close_input_locked()
            try:
                stdin.close()
            except (BrokenPipeError, OSError) as exc:
                LOGGER.debug("Closing %s stdin raised: %s", self._name, exc)

    def _read_stderr(self, process: subprocess.Popen[bytes]) -> None:
        stream = process.stderr
        assert stream is not None
        pending = b""
        with stream:
            while True:
                block = stream.read1(_STDERR_READ_SIZE)  # type: ignore[union-attr]
                if not block:
                    break
                # FFmpeg redraws progress with bare carriage returns.
                pieces = _LINE_BREAK.split(pending + block)
                pending = pieces.pop()
                if len(pending) > _MAX_PENDING_LINE:
                    pieces.append(pending[:_MAX_PENDING_LINE])
                    pending = b""
                for piece in pieces:
                    self._record_stderr_line(process, piece)
        self._record_stderr_line(process, pending)

    def _record_stderr_line(self, process: subprocess.Popen[bytes], raw: bytes) -> None:
        line = raw.decode("utf-8", errors="replace").strip()
        if not line:
            return
        with self._tail_lock:
            self._stderr_tail.append(line)
        level = logging.DEBUG if line.startswith(_PROGRESS_PREFIXES) else logging.INFO
        FFMPEG_LOGGER.log(level, "%s[%s]: %s", self._name, process.pid, line)

    def _watch(self, process: subprocess.Popen[bytes], stderr_thread: threading.Thread) -> None:
        returncode = process.wait()
        stderr_thread.join(timeout=2.0)
        with self._lock:
            self._returncode = returncode
            self._close_input_locked()
        self._exited.set()
        LOGGER.info("%s (pid=%s) exited with %s", self._name, process.pid, returncode)

        callback = self._on_exit
        if callback is None:
            return
        try:
            callback(returncode, self.stderr_tail)
        except Exception:
            LOGGER.exception("Exit callback for %s (pid=%s) failed", self._name, process.pid)


def build_process_factory(
    settings: EncoderSettings,
    *,
    buffer_chunks: int = 100,
    stderr_tail_lines: int = 40,
) -> ProcessFactory:
    """Return a factory producing encoder wrappers for a destination."""

    def _factory(destination: StreamDestination, on_exit: ExitCallback) -> TranscoderProcess:
        LOGGER.info("Encoder command: %s", settings.dry_run(destination))
        return TranscoderProcess(
            settings.build_command(destination),
            on_exit=on_exit,
            buffer_chunks=buffer_chunks,
            stderr_tail_lines=stderr_tail_lines,
            name="ffmpeg",
        )

    return _factory


__all__ = [
    "ExitCallback",
    "FeedResult",
    "ProcessFactory",
    "TranscoderProcess",
    "build_process_factory",
]
