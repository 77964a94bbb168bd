"""Utility helpers shared across the relay service."""
from __future__ import annotations

from .coerce import coerce_float, coerce_int, to_bool, to_csv_tuple
from .urls import join_stream_url, strip_trailing_slash

__all__ = [
    "coerce_float",
    "coerce_int",
    "join_stream_url",
    "strip_trailing_slash",
    "to_bool",
    "to_csv_tuple",
]
