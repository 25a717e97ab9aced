"""Display helpers shared by the text and terminal formatters."""
from __future__ import annotations

from datetime import datetime, timezone

NANOS_PER_SECOND = 1_000_000_000
_NANOS_PER_MINUTE = 60 * NANOS_PER_SECOND
_NANOS_PER_HOUR = 60 * _NANOS_PER_MINUTE


def format_time(unix_nano: int) -> str:
    """UTC wall-clock time, e.g. ``2024-01-02 03:04:05.5 +0000 UTC``.

    Trailing zeros of the fractional second are dropped.
    """
    seconds, nanos = divmod(unix_nano, NANOS_PER_SECOND)
    dt = datetime.fromtimestamp(seconds, tz=timezone.utc)
    frac = f"{nanos:09d}".rstrip("0")
    if frac:
        frac = "." + frac
    return f"{dt:%Y-%m-%d %H:%M:%S}{frac} +0000 UTC"


def _with_fraction(value: int, unit: int, digits: int) -> str:
    whole, frac = divmod(value, unit)
    text = f"{frac:0{digits}d}".rstrip("0")
    return f"{whole}.{text}" if text else str(whole)


def format_duration(nanos: int) -> str:
    """Human duration such as ``1.5s``, ``250ms`` or ``1h2m3s``."""
    if nanos == 0:
        return "0s"
    sign = "-" if nanos < 0 else ""
    n = abs(nanos)
    if n < 1_000:
        return f"{sign}{n}ns"
    if n < 1_000_000:
        return f"{sign}{_with_fraction(n, 1_000, 3)}µs"
    if n < NANOS_PER_SECOND:
        return f"{sign}{_with_fraction(n, 1_000_000, 6)}ms"

    hours, rest = divmod(n, _NANOS_PER_HOUR)
    minutes, rest = divmod(rest, _NANOS_PER_MINUTE)
    seconds = _with_fraction(rest, NANOS_PER_SECOND, 9) + "s"
    if hours:
        return f"{sign}{hours}h{minutes}m{seconds}"
    if minutes:
        return f"{sign}{minutes}m{seconds}"
    return sign + seconds


def format_address(address: int) -> str:
    """Hex address padded to at least four digits: ``0x0042``, ``0x7f001000``."""
    return f"0x{address:04x}"
