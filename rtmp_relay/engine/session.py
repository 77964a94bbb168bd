"""Per-connection stream session state machine."""
from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Optional

from .destination import DEFAULT_ALLOWED_SCHEMES, StreamDestination
from .exceptions import DestinationError, ErrorKind, SpawnError
from .process import FeedResult, ProcessFactory, TranscoderProcess
from .status_snapshot import SessionStatus
from .stop_strategy import StopStrategy

LOGGER = logging.getLogger(__name__)

READY_EVENT = "stream:ready"
ERROR_EVENT = "stream:error"

Notifier = Callable[[str, Optional[Dict[str, Any]]], None]


class SessionState(str, Enum):
    IDLE = "idle"
    STARTING = "starting"
    STREAMING = "streaming"
    STOPPING = "stopping"
    TERMINATED = "terminated"


_PROCESS_STATES = frozenset({SessionState.STARTING, SessionState.STREAMING, SessionState.STOPPING})


class StreamSession:
    """Drive one client's encoder through configure/chunk/stop/disconnect.

    Every event and every exit notification is handled while holding the
    session lock, so transitions for one session are serialized. The
    session owns at most one :class:`TranscoderProcess` at a time; exit
    notifications from a process the session already let go of are
    ignored.
    """

    def __init__(
        self,
        session_id: str,
        *,
        process_factory: ProcessFactory,
        notify: Optional[Notifier] = None,
        stop_strategy: Optional[StopStrategy] = None,
        allowed_schemes: Iterable[str] = DEFAULT_ALLOWED_SCHEMES,
    ) -> None:
        self._id = session_id
        self._process_factory = process_factory
        self._notify_callback = notify
        self._stopper = stop_strategy or StopStrategy()
        self._allowed_schemes = tuple(allowed_schemes)
        self._lock = threading.RLock()
        self._state = SessionState.IDLE
        self._destination: Optional[StreamDestination] = None
        self._process: Optional[TranscoderProcess] = None
        self._generation = 0
        self._chunks_forwarded = 0
        self._chunks_dropped = 0
        self._congested = False
        self._last_error: Optional[str] = None

    # ------------------------------------------------------------------
    # State accessors
    # ------------------------------------------------------------------
    @property
    def id(self) -> str:
        return self._id

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._state

    @property
    def destination(self) -> Optional[StreamDestination]:
        with self._lock:
            return self._destination

    @property
    def process(self) -> Optional[TranscoderProcess]:
        with self._lock:
            return self._process

    def live_process_count(self) -> int:
        """Number of encoder handles owned by this session (0 or 1)."""

        with self._lock:
            self._check_invariants_locked()
            return 0 if self._process is None else 1

    def status(self) -> SessionStatus:
        """Return an immutable snapshot of session state."""

        with self._lock:
            process = self._process
            destination = self._destination
            return SessionStatus(
                session_id=self._id,
                state=self._state.value,
                pid=process.pid if process else None,
                destination=destination.masked_url if destination else None,
                chunks_forwarded=self._chunks_forwarded,
                chunks_dropped=self._chunks_dropped,
                buffered_chunks=process.buffered if process else 0,
                last_error=self._last_error,
            )

    # ------------------------------------------------------------------
    # Inbound events
    # ------------------------------------------------------------------
    def configure(self, payload: Any) -> bool:
        """Start (or restart) the encoder for the destination in ``payload``.

        Returns ``True`` once the new encoder is accepting input.
        """

        with self._lock:
            if self._state is SessionState.TERMINATED:
                LOGGER.debug("Session %s terminated; configure ignored", self._id)
                return False
            try:
                destination = StreamDestination.from_payload(payload, allowed_schemes=self._allowed_schemes)
            except DestinationError as exc:
                self._report(exc.kind, str(exc))
                return False

            if self._process is not None:
                LOGGER.info("Session %s reconfiguring; stopping current encoder", self._id)
                self._shutdown_locked()
            return self._spawn_locked(destination)

    def handle_chunk(self, data: Any) -> bool:
        """Forward one media chunk; returns whether it was queued."""

        with self._lock:
            process = self._process
            if self._state is not SessionState.STREAMING or process is None:
                return False
            if not isinstance(data, (bytes, bytearray, memoryview)):
                LOGGER.warning("Session %s received non-binary chunk (%s); dropping", self._id, type(data).__name__)
                return False
            if not data:
                return False

            result = process.feed(data)
            if result is FeedResult.ACCEPTED:
                self._chunks_forwarded += 1
                if self._congested:
                    self._congested = False
                    LOGGER.info(
                        "Session %s encoder caught up (%d chunk(s) dropped so far)",
                        self._id,
                        self._chunks_dropped,
                    )
                return True
            if result is FeedResult.BACKPRESSURE:
                self._chunks_dropped += 1
                if not self._congested:
                    self._congested = True
                    self._report(
                        ErrorKind.BACKPRESSURE,
                        "encoder is not keeping up; dropping newest chunks",
                    )
            return False

    def stop(self) -> bool:
        """Request a graceful stop; the exit notification returns the session to idle."""

        with self._lock:
            if self._state not in (SessionState.STARTING, SessionState.STREAMING):
                LOGGER.debug("Session %s has no running encoder to stop (state=%s)", self._id, self._state.value)
                return False
            process = self._process
            assert process is not None
            self._state = SessionState.STOPPING
            LOGGER.info("Session %s stopping encoder (pid=%s)", self._id, process.pid)
            process.stop()
            if self._process is process:
                self._escalate_in_background(process)
            return True

    def disconnect(self, *, wait: bool = False) -> None:
        """Tear the session down; terminal.

        By default escalation runs on a background thread. With ``wait`` the
        call blocks until the encoder has exited or every signal was tried,
        which is what application shutdown needs.
        """

        with self._lock:
            if self._state is SessionState.TERMINATED:
                return
            process = self._process
            if process is not None:
                LOGGER.info("Session %s disconnected; stopping encoder (pid=%s)", self._id, process.pid)
                self._state = SessionState.STOPPING
                # A prior stop:stream already has an escalation in flight.
                escalating = process.stop_requested
                if wait and escalating:
                    process.wait(self._stopper.deadline)
                elif wait:
                    self._stopper.shutdown(process)
                elif not escalating:
                    process.stop()
                    self._escalate_in_background(process)
                self._release_locked()
            self._state = SessionState.TERMINATED
            self._destination = None
            LOGGER.info("Session %s terminated", self._id)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _spawn_locked(self, destination: StreamDestination) -> bool:
        assert self._process is None, f"session {self._id} already owns an encoder"
        self._generation += 1
        generation = self._generation
        self._chunks_forwarded = 0
        self._chunks_dropped = 0
        self._congested = False
        self._last_error = None

        def _on_exit(returncode: Optional[int], stderr_tail: str) -> None:
            self._handle_exit(generation, returncode, stderr_tail)

        process = self._process_factory(destination, _on_exit)
        self._process = process
        self._state = SessionState.STARTING
        self._destination = destination
        try:
            process.start()
        except SpawnError as exc:
            self._process = None
            self._destination = None
            self._state = SessionState.IDLE
            self._report(exc.kind, str(exc))
            return False

        self._state = SessionState.STREAMING
        LOGGER.info(
            "Session %s streaming to %s (pid=%s)",
            self._id,
            destination.masked_url,
            process.pid,
        )
        self._notify(READY_EVENT, None)
        return True

    def _shutdown_locked(self) -> None:
        process = self._process
        assert process is not None
        generation = self._generation
        self._state = SessionState.STOPPING
        result = self._stopper.shutdown(process)
        LOGGER.info("Session %s encoder stopped (returncode=%s)", self._id, result.returncode)
        if self._generation == generation and self._process is process:
            self._release_locked()

    def _escalate_in_background(self, process: TranscoderProcess) -> None:
        thread = threading.Thread(
            target=self._stopper.shutdown,
            args=(process,),
            name=f"session-{self._id}-stop",
            daemon=True,
        )
        thread.start()

    def _release_locked(self) -> None:
        self._process = None
        self._congested = False
        if self._state is not SessionState.TERMINATED:
            self._state = SessionState.IDLE

    def _handle_exit(self, generation: int, returncode: Optional[int], stderr_tail: str) -> None:
        with self._lock:
            if generation != self._generation or self._process is None:
                LOGGER.debug("Session %s ignoring exit of a released encoder (returncode=%s)", self._id, returncode)
                return
            previous = self._state
            self._release_locked()
            if previous is SessionState.STOPPING:
                LOGGER.info("Session %s encoder exited after stop (returncode=%s)", self._id, returncode)
                return
            detail = stderr_tail.strip() or f"encoder exited with code {returncode}"
            self._report(ErrorKind.UNEXPECTED_EXIT, detail, returncode=returncode)

    def _check_invariants_locked(self) -> None:
        has_process = self._process is not None
        assert has_process == (self._state in _PROCESS_STATES), (
            f"session {self._id} state {self._state.value} inconsistent with process ownership"
        )

    def _report(self, kind: ErrorKind, detail: str, **extra: Any) -> None:
        self._last_error = detail
        LOGGER.warning("Session %s %s: %s", self._id, kind.value, detail)
        payload: Dict[str, Any] = {"kind": kind.value, "detail": detail}
        payload.update(extra)
        self._notify(ERROR_EVENT, payload)

    def _notify(self, event: str, payload: Optional[Dict[str, Any]]) -> None:
        callback = self._notify_callback
        if callback is None:
            return
        try:
            callback(event, payload)
        except Exception:  # pragma: no cover - transport dependent
            LOGGER.debug("Failed to deliver %s to session %s", event, self._id, exc_info=True)


__all__ = ["ERROR_EVENT", "READY_EVENT", "Notifier", "SessionState", "StreamSession"]
