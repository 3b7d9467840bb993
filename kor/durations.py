"""Parsing of duration strings such as ``"1h30m"`` or ``"-2.5s"``."""

from __future__ import annotations

import re
from datetime import timedelta

__all__ = ["DurationError", "parse_duration"]

_UNITS = {
    "ns": 1,
    "us": 1_000,
    "\u00b5s": 1_000,
    "\u03bcs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}

_COMPONENT = re.compile(r"([0-9]*)(?:\.([0-9]*))?([^0-9.]*)")
_MAX_NANOSECONDS = 1 << 63


class DurationError(ValueError):
    """Raised when a duration string cannot be parsed."""


def parse_duration(text: str) -> timedelta:
    """Parse a signed sequence of decimal numbers with unit suffixes.

    Valid units are ``ns``, ``us`` (or ``µs``), ``ms``, ``s``, ``m`` and ``h``.
    The result is truncated to whole microseconds.
    """
    rest = text
    negative = False
    if rest and rest[0] in "+-":
        negative = rest[0] == "-"
        rest = rest[1:]
    if rest == "0":
        return timedelta(0)
    if not rest:
        raise DurationError(f'time: invalid duration "{text}"')

    total = 0
    pos = 0
    while pos < len(rest):
        if not (rest[pos] == "." or rest[pos].isdigit()):
            raise DurationError(f'time: invalid duration "{text}"')
        match = _COMPONENT.match(rest, pos)
        whole, frac, unit = match.group(1), match.group(2) or "", match.group(3)
        if not whole and not frac:
            raise DurationError(f'time: invalid duration "{text}"')
        if not unit:
            raise DurationError(f'time: missing unit in duration "{text}"')
        if unit not in _UNITS:
            raise DurationError(f'time: unknown unit "{unit}" in duration "{text}"')
        scale = _UNITS[unit]
        value = int(whole or "0") * scale
        if frac:
            value += (int(frac) * scale) // 10 ** len(frac)
        total += value
        if total > _MAX_NANOSECONDS:
            raise DurationError(f'time: invalid duration "{text}"')
        pos = match.end()

    if not negative and total >= _MAX_NANOSECONDS:
        raise DurationError(f'time: invalid duration "{text}"')
    result = timedelta(microseconds=total // 1000)
    return -result if negative else result