"""URL manipulation helpers."""
from __future__ import annotations


def strip_trailing_slash(url: str) -> str:
    trimmed = (url or "").strip()
    while trimmed.endswith("/"):
        trimmed = trimmed[:-1]
    return trimmed


def join_stream_url(base_url: str, stream_key: str) -> str:
    """Return ``base_url/stream_key`` without doubling the separator."""

    return f"{strip_trailing_slash(base_url)}/{stream_key}"


__all__ = ["join_stream_url", "strip_trailing_slash"]
