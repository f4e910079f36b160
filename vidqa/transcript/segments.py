"""Segment normalizer — raw timed cues → sorted, re-indexed TranscriptSegments.

Cue field names vary by producer (startMs, start, from, startTime, ...).
Each bound is resolved from an ordered list of candidate keys; the first
key holding a parseable value wins.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import BaseModel

from ..schemas import TranscriptSegment
from .timestamps import format_timestamp, parse_timestamp_ms

logger = logging.getLogger(__name__)

MAX_SEGMENTS = 4000
MAX_SEGMENT_TEXT_CHARS = 500
MIN_SEGMENT_DURATION_MS = 500
DEFAULT_SEGMENT_DURATION_MS = 3000

TEXT_FIELDS = ("text", "content", "value", "line")
START_FIELDS = ("startMs", "start_ms", "start", "from", "startTime", "start_time")
END_FIELDS = ("endMs", "end_ms", "end", "to", "endTime", "end_time")
DURATION_FIELDS = ("durationMs", "duration_ms", "duration")


def clean_cue_text(value: object) -> str:
    """Trim, collapse whitespace, cap at the segment text limit."""
    if value is None:
        return ""
    text = " ".join(str(value).split())
    return text[:MAX_SEGMENT_TEXT_CHARS]


def total_duration_ms(duration_seconds: object) -> int | None:
    """Known total duration in ms, or None when absent / not positive."""
    if duration_seconds is None or isinstance(duration_seconds, bool):
        return None
    try:
        seconds = float(duration_seconds)  # type: ignore[arg-type]
    except (TypeError, ValueError, OverflowError):
        return None
    if not seconds > 0 or not math.isfinite(seconds * 1000):
        return None
    return int(seconds * 1000)


def _first_text(cue: Mapping[str, Any]) -> str:
    for key in TEXT_FIELDS:
        if cue.get(key) is not None:
            return clean_cue_text(cue[key])
    return ""


def _first_timestamp(cue: Mapping[str, Any], keys: tuple[str, ...]) -> int | None:
    for key in keys:
        parsed = parse_timestamp_ms(cue.get(key), assume_ms=key.lower().endswith("ms"))
        if parsed is not None:
            return parsed
    return None


def _as_mapping(raw: object) -> Mapping[str, Any] | None:
    if isinstance(raw, BaseModel):
        return raw.model_dump(by_alias=True)
    if isinstance(raw, Mapping):
        return raw
    return None


def normalize_segments(
    cues: Iterable[object] | None,
    duration_seconds: float | None = None,
) -> list[TranscriptSegment]:
    """Fill missing bounds, clamp to the video duration, sort and re-index."""
    if cues is None:
        return []

    total_ms = total_duration_ms(duration_seconds)
    resolved: list[tuple[int, int, str]] = []
    previous_end = 0

    for position, raw in enumerate(cues):
        if position >= MAX_SEGMENTS:
            logger.debug("Cue input truncated at %d cues", MAX_SEGMENTS)
            break

        cue = _as_mapping(raw)
        if cue is None:
            continue

        text = _first_text(cue)
        if not text:
            continue

        start_ms = _first_timestamp(cue, START_FIELDS)
        end_ms = _first_timestamp(cue, END_FIELDS)

        if start_ms is None:
            start_ms = previous_end

        if end_ms is None:
            hinted = _first_timestamp(cue, DURATION_FIELDS)
            if hinted is None:
                hinted = DEFAULT_SEGMENT_DURATION_MS
            end_ms = start_ms + max(MIN_SEGMENT_DURATION_MS, hinted)

        if end_ms <= start_ms:
            end_ms = start_ms + MIN_SEGMENT_DURATION_MS

        if total_ms is not None:
            start_ms = min(max(0, start_ms), total_ms)
            end_ms = min(max(start_ms + MIN_SEGMENT_DURATION_MS, end_ms), total_ms)

        resolved.append((start_ms, end_ms, text))
        previous_end = end_ms

    resolved.sort(key=lambda row: row[0])

    return [
        TranscriptSegment(
            index=index,
            start_ms=start_ms,
            end_ms=end_ms,
            start_time=format_timestamp(start_ms),
            end_time=format_timestamp(end_ms),
            text=text,
        )
        for index, (start_ms, end_ms, text) in enumerate(resolved, 1)
    ]


def build_transcript_text(segments: Iterable[TranscriptSegment], max_chars: int) -> str:
    """Space-join non-empty segment texts, capped at max_chars."""
    texts = (segment.text.strip() for segment in segments)
    return " ".join(text for text in texts if text)[:max_chars]
