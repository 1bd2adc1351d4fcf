"""Conversion between human time strings ("10s", "2h") and milliseconds."""

from __future__ import annotations

import re

from hourglass.core.errors import InvalidInputError

_TIME_STRING = re.compile(r"([0-9]+)(ms|h|m|s)", re.IGNORECASE)

_MS_PER_UNIT = {
    "h": 3_600_000,
    "m": 60_000,
    "s": 1_000,
    "ms": 1,
}

# Largest unit first; format_duration picks the first one that fits.
_UNITS_DESCENDING = (("h", 3_600_000), ("m", 60_000), ("s", 1_000))


def parse_duration(text: str) -> int:
    """Convert a time string to an integer number of milliseconds.

    A time string is an unsigned integer followed by one of ``h``, ``m``,
    ``s`` or ``ms`` (case insensitive).  Raises :class:`InvalidInputError`
    for anything else.
    """
    match = _TIME_STRING.fullmatch(text)
    if match is None:
        raise InvalidInputError(
            text,
            'Time string must be an integer followed by one of "H", "M", "S", '
            'or "MS" (case insensitive).',
        )
    amount, unit = match.groups()
    return int(amount) * _MS_PER_UNIT[unit.lower()]


def format_duration(ms: float) -> str:
    """Convert milliseconds to a time string in the largest unit that fits.

    The quantity is not rounded, so ``90000`` becomes ``"1.5m"``.  Values
    under a second are returned as the bare millisecond count.
    """
    for suffix, size in _UNITS_DESCENDING:
        if ms >= size:
            return f"{_number(ms / size)}{suffix}"
    return _number(ms)


def _number(value: float) -> str:
    """Render *value* without a trailing ``.0`` when it is whole."""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))
