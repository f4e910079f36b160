"""Prose splitting — synthetic timing for transcripts with no timestamps.

Text is cut into sentences (or lines) and the total duration is shared out
in proportion to each chunk's length, on a running cursor so chunks are
contiguous.
"""

from __future__ import annotations

import re
from typing import Any

from .segments import (
    DEFAULT_SEGMENT_DURATION_MS,
    MAX_SEGMENTS,
    MIN_SEGMENT_DURATION_MS,
    total_duration_ms,
)

_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+|\n+")


def split_sentences(text: str) -> list[str]:
    clean = text.strip()
    if not clean:
        return []
    chunks = [chunk.strip() for chunk in _SENTENCE_SPLIT_RE.split(clean) if chunk and chunk.strip()]
    return chunks or [clean]


def split_prose(
    text: str,
    duration_seconds: float | None = None,
    max_chars: int | None = None,
) -> list[dict[str, Any]]:
    """Split unsegmented text into timed cue dicts."""
    clean = text.strip()
    if max_chars is not None:
        clean = clean[:max_chars]
    chunks = split_sentences(clean)
    if not chunks:
        return []

    total_ms = total_duration_ms(duration_seconds) or len(chunks) * DEFAULT_SEGMENT_DURATION_MS
    total_chars = sum(len(chunk) for chunk in chunks) or 1

    cues: list[dict[str, Any]] = []
    cursor = 0
    for chunk in chunks[:MAX_SEGMENTS]:
        span = max(MIN_SEGMENT_DURATION_MS, total_ms * len(chunk) // total_chars)
        cues.append({"startMs": cursor, "endMs": cursor + span, "text": chunk})
        cursor += span
    return cues
