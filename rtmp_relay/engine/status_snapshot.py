"""Data structures that describe stream session state."""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Optional


@dataclass
class SessionStatus:
    """Snapshot of one stream session."""

    session_id: str
    state: str
    pid: Optional[int]
    destination: Optional[str]
    chunks_forwarded: int
    chunks_dropped: int
    buffered_chunks: int
    last_error: Optional[str]

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


__all__ = ["SessionStatus"]
