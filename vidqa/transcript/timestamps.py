"""Timestamp tokens → integer milliseconds.

Accepted forms: numbers (seconds, or milliseconds when integral and at or
above the threshold), "SS.fff", "MM:SS(.fff)", "HH:MM:SS(.fff)" with either
"." or "," as decimal separator.

The integer threshold is a heuristic: a bare "90" is 90 seconds but a bare
"1500" is 1.5 seconds. Durations of 1000+ seconds written as bare integers
are misread; set VIDQA_MS_THRESHOLD to move the boundary.
"""

from __future__ import annotations

import math
import re

from .. import config

DEFAULT_MS_THRESHOLD = 1000

# numbers at or above this, in their own unit, are unparseable
MAX_TIMESTAMP_VALUE = 10**15
MAX_INTEGER_DIGITS = 15

_INT_RE = re.compile(r"^\d+$")
_DECIMAL_RE = re.compile(r"^\d+\.\d+$")
_FIELD_RE = re.compile(r"^\d+(?:\.\d+)?$")


def _threshold(ms_threshold: int | None) -> int:
    if ms_threshold is not None:
        return ms_threshold
    return config.get("VIDQA_MS_THRESHOLD", DEFAULT_MS_THRESHOLD, cast=int)


def _from_integral(value: float, threshold: int) -> int:
    return int(value) if value >= threshold else int(value) * 1000


def _floor(value: float) -> int | None:
    if not math.isfinite(value) or value >= MAX_TIMESTAMP_VALUE * 1000:
        return None
    return math.floor(value)


def _from_number(value: int | float, ms_threshold: int | None, assume_ms: bool) -> int | None:
    if value < 0 or value >= MAX_TIMESTAMP_VALUE:
        return None
    if assume_ms:
        return math.floor(value)
    if isinstance(value, int) or value.is_integer():
        return _from_integral(value, _threshold(ms_threshold))
    return _floor(value * 1000)


def parse_timestamp_ms(
    value: object,
    ms_threshold: int | None = None,
    assume_ms: bool = False,
) -> int | None:
    """Parse one timestamp token. Returns None when it is absent or unparseable.

    assume_ms skips the magnitude heuristic for bare numbers whose unit is
    already known to be milliseconds (fields named startMs, duration_ms, ...).
    Clock strings are parsed as clock time either way.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, int):
        return _from_number(value, ms_threshold, assume_ms)
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return _from_number(value, ms_threshold, assume_ms)

    raw = str(value).strip()
    if not raw:
        return None

    if _INT_RE.match(raw):
        digits = raw.lstrip("0") or "0"
        if len(digits) > MAX_INTEGER_DIGITS:
            return None
        return _from_number(int(digits), ms_threshold, assume_ms)

    if _DECIMAL_RE.match(raw):
        number = float(raw)
        if not math.isfinite(number):
            return None
        return _from_number(number, ms_threshold, assume_ms)

    parts = raw.replace(",", ".", 1).split(":")
    if len(parts) not in (2, 3):
        return None
    if len(parts) == 2:
        parts = ["0", *parts]
    if not all(_FIELD_RE.match(part.strip()) for part in parts):
        return None

    hours, minutes, seconds = (float(part) for part in parts)
    if minutes >= 60 or seconds >= 60.999:
        return None

    return _floor(hours * 3_600_000 + minutes * 60_000 + seconds * 1000)


def format_timestamp(ms: object) -> str:
    """Render milliseconds as HH:MM:SS.mmm."""
    try:
        safe = max(0, math.floor(float(ms)))  # type: ignore[arg-type]
    except (TypeError, ValueError, OverflowError):
        safe = 0
    hours = safe // 3_600_000
    minutes = (safe % 3_600_000) // 60_000
    seconds = (safe % 60_000) // 1000
    millis = safe % 1000
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}.{millis:03d}"
