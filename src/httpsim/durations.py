# src/httpsim/durations.py
"""Duration parsing and formatting.

Durations are integer nanoseconds. The text form is the compact
``1h30m``/``250ms``/``1.5s`` notation used in configuration files.
"""

from __future__ import annotations

import re
from datetime import timedelta
from typing import Any

NANOSECOND = 1
MICROSECOND = 1_000 * NANOSECOND
MILLISECOND = 1_000 * MICROSECOND
SECOND = 1_000 * MILLISECOND
MINUTE = 60 * SECOND
HOUR = 60 * MINUTE

_UNITS: dict[str, int] = {
    "ns": NANOSECOND,
    "us": MICROSECOND,
    "µs": MICROSECOND,  # U+00B5 micro sign
    "μs": MICROSECOND,  # U+03BC greek mu
    "ms": MILLISECOND,
    "s": SECOND,
    "m": MINUTE,
    "h": HOUR,
}

_COMPONENT = re.compile(r"(\d+)?(?:\.(\d*))?(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(text: str) -> int:
    """Parse a duration string into nanoseconds.

    Accepts an optional sign followed by one or more ``<number><unit>``
    groups (``"300ms"``, ``"-1.5h"``, ``"2h45m"``). ``"0"`` is zero.
    Fractions below one nanosecond are truncated.

    Raises:
        ValueError: If the text is not a valid duration.
    """
    original = text
    negative = False
    if text[:1] in ("-", "+"):
        negative = text[0] == "-"
        text = text[1:]
    if text == "0":
        return 0
    if not text:
        raise ValueError(f"invalid duration {original!r}")

    total = 0
    pos = 0
    while pos < len(text):
        m = _COMPONENT.match(text, pos)
        if m is None or m.end() == pos:
            raise ValueError(f"invalid duration {original!r}")
        whole, frac, unit = m.group(1), m.group(2), m.group(3)
        if whole is None and not frac:
            raise ValueError(f"invalid duration {original!r}")
        scale = _UNITS[unit]
        total += int(whole or "0") * scale
        if frac:
            total += int(frac) * scale // 10 ** len(frac)
        pos = m.end()

    return -total if negative else total


def _format_fraction(value: int, scale: int) -> str:
    """Render ``value / scale`` with trailing fractional zeros removed."""
    whole, frac = divmod(value, scale)
    if frac == 0:
        return str(whole)
    digits = len(str(scale)) - 1
    return f"{whole}.{str(frac).rjust(digits, '0').rstrip('0')}"


def format_duration(ns: int) -> str:
    """Format nanoseconds as a compact duration string.

    Examples: ``0s``, ``999ns``, ``1.5µs``, ``200ms``, ``1.684999282s``,
    ``25m7.572021725s``, ``1h0m0s``.
    """
    if ns == 0:
        return "0s"
    sign = "-" if ns < 0 else ""
    u = abs(ns)

    if u < MICROSECOND:
        return f"{sign}{u}ns"
    if u < MILLISECOND:
        return f"{sign}{_format_fraction(u, MICROSECOND)}µs"
    if u < SECOND:
        return f"{sign}{_format_fraction(u, MILLISECOND)}ms"

    hours, rest = divmod(u, HOUR)
    minutes, rest = divmod(rest, MINUTE)
    seconds = f"{_format_fraction(rest, SECOND)}s"
    if hours:
        return f"{sign}{hours}h{minutes}m{seconds}"
    if minutes:
        return f"{sign}{minutes}m{seconds}"
    return f"{sign}{seconds}"


def coerce_duration(value: Any) -> int:
    """Convert config input (string, int nanoseconds, timedelta) to nanoseconds."""
    if isinstance(value, bool):
        raise ValueError(f"invalid duration {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, timedelta):
        return (value.days * 86_400 + value.seconds) * SECOND + value.microseconds * MICROSECOND
    if isinstance(value, str):
        return parse_duration(value.strip())
    raise ValueError(f"invalid duration {value!r}")
