"""Generic coercion utilities used when reading configuration."""
from __future__ import annotations

from typing import Any, Iterable, Tuple


def to_bool(value: Any, *, default: bool = False) -> bool:
    """Best-effort conversion of common truthy/falsey inputs to ``bool``."""

    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "1", "yes", "on"}:
            return True
        if lowered in {"false", "0", "no", "off", ""}:
            return False
    return default


def coerce_int(value: Any, fallback: int, *, minimum: int | None = None) -> int:
    try:
        candidate = int(value)
    except (TypeError, ValueError):
        return fallback
    if minimum is not None and candidate < minimum:
        return fallback
    return candidate


def coerce_float(value: Any, fallback: float, *, minimum: float | None = None) -> float:
    try:
        candidate = float(value)
    except (TypeError, ValueError):
        return fallback
    if minimum is not None and candidate < minimum:
        return fallback
    return candidate


def to_csv_tuple(value: Any, fallback: Iterable[str]) -> Tuple[str, ...]:
    """Split a comma separated string (or sequence) into lowercase entries."""

    if isinstance(value, str):
        candidates: Iterable[Any] = value.split(",")
    elif isinstance(value, (list, tuple, set)):
        candidates = value
    else:
        return tuple(fallback)
    entries = tuple(str(item).strip().lower() for item in candidates if str(item).strip())
    return entries or tuple(fallback)


__all__ = ["coerce_float", "coerce_int", "to_bool", "to_csv_tuple"]
