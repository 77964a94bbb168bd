"""Signal orchestration used to stop relay encoder processes."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from .process import TranscoderProcess
from ..utils import coerce_float

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class StopResult:
    """Outcome of attempting to stop an encoder process."""

    returncode: Optional[int]
    escalated: bool = False


class StopStrategy:
    """Escalate from SIGINT to SIGTERM to SIGKILL until the encoder exits."""

    def __init__(
        self,
        *,
        graceful_timeout: float = 5.0,
        terminate_timeout: float = 5.0,
        kill_timeout: float = 2.0,
    ) -> None:
        self._graceful_timeout = max(0.0, graceful_timeout)
        self._terminate_timeout = max(0.0, terminate_timeout)
        self._kill_timeout = max(0.0, kill_timeout)

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "StopStrategy":
        return cls(
            graceful_timeout=coerce_float(config.get("RELAY_STOP_GRACEFUL_TIMEOUT"), 5.0, minimum=0.0),
            terminate_timeout=coerce_float(config.get("RELAY_STOP_TERMINATE_TIMEOUT"), 5.0, minimum=0.0),
            kill_timeout=coerce_float(config.get("RELAY_STOP_KILL_TIMEOUT"), 2.0, minimum=0.0),
        )

    @property
    def deadline(self) -> float:
        """Longest time ``shutdown`` can spend waiting on one process."""

        return self._graceful_timeout + self._terminate_timeout + self._kill_timeout

    def shutdown(self, process: TranscoderProcess) -> StopResult:
        """Stop ``process`` and wait for its exit notification."""

        process.stop()
        returncode = process.wait(self._graceful_timeout)
        if returncode is not None or not process.running:
            return StopResult(returncode=process.returncode)

        LOGGER.warning("Encoder (pid=%s) still running after SIGINT; sending SIGTERM", process.pid)
        process.terminate()
        returncode = process.wait(self._terminate_timeout)

        if returncode is None and process.running:
            LOGGER.error("Encoder (pid=%s) ignored SIGTERM; sending SIGKILL", process.pid)
            process.kill()
            returncode = process.wait(self._kill_timeout)
            if returncode is None:
                LOGGER.error("Encoder (pid=%s) still running after SIGKILL attempt", process.pid)

        return StopResult(returncode=returncode, escalated=True)


__all__ = ["StopResult", "StopStrategy"]
