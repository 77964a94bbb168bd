"""Validation of client supplied RTMP destinations."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterable, Mapping
from urllib.parse import urlsplit

from .exceptions import DestinationError
from ..utils import join_stream_url

MAX_URL_LENGTH = 2_048
MAX_KEY_LENGTH = 256
DEFAULT_ALLOWED_SCHEMES = ("rtmp", "rtmps")

_UNSAFE_URL_CHARS = re.compile(r"[\s\x00-\x1f\x7f;|&$`<>\"'\\(){}]")
_STREAM_KEY_PATTERN = re.compile(r"^[A-Za-z0-9._~=-]+$")


@dataclass(frozen=True)
class StreamDestination:
    """Validated RTMP ingest target for one encoder run."""

    base_url: str
    stream_key: str

    @property
    def url(self) -> str:
        return join_stream_url(self.base_url, self.stream_key)

    @property
    def masked_url(self) -> str:
        """Destination suitable for logs: the stream key is never printed."""

        return join_stream_url(self.base_url, "***")

    @classmethod
    def from_payload(
        cls,
        payload: Any,
        *,
        allowed_schemes: Iterable[str] = DEFAULT_ALLOWED_SCHEMES,
    ) -> "StreamDestination":
        if not isinstance(payload, Mapping):
            raise DestinationError("stream configuration must be an object with streamUrl and streamKey")
        base_url = validate_stream_url(payload.get("streamUrl"), allowed_schemes=allowed_schemes)
        stream_key = validate_stream_key(payload.get("streamKey"))
        return cls(base_url=base_url, stream_key=stream_key)


def validate_stream_url(value: Any, *, allowed_schemes: Iterable[str] = DEFAULT_ALLOWED_SCHEMES) -> str:
    """Return ``value`` stripped, or raise :class:`DestinationError`."""

    if not isinstance(value, str):
        raise DestinationError("streamUrl is required")
    url = value.strip()
    if not url:
        raise DestinationError("streamUrl is required")
    if len(url) > MAX_URL_LENGTH:
        raise DestinationError("streamUrl is too long")
    if url.startswith("-"):
        raise DestinationError("streamUrl must not start with '-'")
    if _UNSAFE_URL_CHARS.search(url):
        raise DestinationError("streamUrl contains forbidden characters")

    try:
        parts = urlsplit(url)
        hostname = parts.hostname
    except ValueError as exc:
        raise DestinationError(f"streamUrl is malformed: {exc}") from exc
    schemes = {scheme.lower() for scheme in allowed_schemes}
    if parts.scheme.lower() not in schemes:
        raise DestinationError(f"streamUrl scheme must be one of: {', '.join(sorted(schemes))}")
    if not hostname:
        raise DestinationError("streamUrl must include a host")
    if any(segment == ".." for segment in parts.path.split("/")):
        raise DestinationError("streamUrl must not contain '..' path segments")
    return url


def validate_stream_key(value: Any) -> str:
    """Return ``value`` stripped, or raise :class:`DestinationError`."""

    if not isinstance(value, str):
        raise DestinationError("streamKey is required")
    key = value.strip()
    if not key:
        raise DestinationError("streamKey is required")
    if len(key) > MAX_KEY_LENGTH:
        raise DestinationError("streamKey is too long")
    if key.startswith("-") or ".." in key:
        raise DestinationError("streamKey contains a forbidden sequence")
    if not _STREAM_KEY_PATTERN.match(key):
        raise DestinationError("streamKey contains forbidden characters")
    return key


__all__ = [
    "DEFAULT_ALLOWED_SCHEMES",
    "StreamDestination",
    "validate_stream_key",
    "validate_stream_url",
]
