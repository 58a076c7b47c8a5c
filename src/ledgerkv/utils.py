"""utils.py - Small helpers shared across ledgerkv."""

from __future__ import annotations

from typing import Any


def assumption(obj: Any, *expected: type) -> bool:
    """Check against multiple possible types"""
    for exp in expected:
        if isinstance(obj, exp):
            return True
    _raise_assert(obj, expected)
    return False


def _raise_assert(obj: Any, expected: tuple[type, ...]) -> None:
    if len(expected) == 1:
        msg = f"Expected {expected[0].__name__}, instead got {type(obj).__name__} (value: {obj!r})"
    else:
        names = ", ".join(e.__name__ for e in expected)
        msg = f"Expected one of ({names}), instead got {type(obj).__name__} (value: {obj!r})"
    raise AssertionError(msg)


def to_text(value: bytes | None) -> str:
    """Decode a stored value for JSON output; invalid utf8 is replaced."""
    if value is None:
        return ""
    return bytes(value).decode("utf-8", errors="replace")
