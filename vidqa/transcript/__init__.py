"""Transcript ingestion — routes raw input to the right segmentation strategy.

Strategies, in priority order:
  cues        explicit cue array       → normalizer
  cue_blocks  text containing "-->"    → SRT/VTT block parser → normalizer
  prose       anything else            → proportional sentence split → normalizer

transcript_text is always rebuilt from the resulting segments so the two
never disagree.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from ..errors import ValidationError
from ..schemas import NormalizedTranscript, TranscriptSegment
from .cue_blocks import has_cue_blocks, parse_cue_blocks
from .prose import split_prose
from .segments import build_transcript_text, normalize_segments
from .timestamps import format_timestamp, parse_timestamp_ms

logger = logging.getLogger(__name__)

MAX_TRANSCRIPT_TEXT_CHARS = 120_000


def _has_cues(cues: object) -> bool:
    return isinstance(cues, Sequence) and not isinstance(cues, (str, bytes)) and len(cues) > 0


def detect_shape(transcript: str | None = None, cues: object = None) -> str:
    """Detect input shape. Returns 'cues', 'cue_blocks', 'prose' or 'empty'."""
    if _has_cues(cues):
        return "cues"
    text = (transcript or "").strip()
    if not text:
        return "empty"
    if has_cue_blocks(text):
        return "cue_blocks"
    return "prose"


def _word_count(text: str) -> int:
    return len(text.split())


def _build(segments: list[TranscriptSegment], text: str | None = None) -> NormalizedTranscript:
    transcript_text = text if text is not None else build_transcript_text(segments, MAX_TRANSCRIPT_TEXT_CHARS)
    return NormalizedTranscript(
        segments=segments,
        transcript_text=transcript_text,
        word_count=_word_count(transcript_text),
        segment_count=len(segments),
    )


def parse_transcript(
    transcript: str | None = None,
    cues: Sequence[object] | None = None,
    duration_seconds: float | None = None,
) -> NormalizedTranscript:
    """Normalize any supported transcript input. Never raises on content."""
    shape = detect_shape(transcript, cues)

    if shape == "cues":
        segments = normalize_segments(cues, duration_seconds)
        logger.debug("Normalized %d cues into %d segments", len(cues or []), len(segments))
        return _build(segments)

    if shape == "empty":
        return NormalizedTranscript()

    raw = (transcript or "").strip()
    segments: list[TranscriptSegment] = []
    if shape == "cue_blocks":
        segments = normalize_segments(parse_cue_blocks(raw), duration_seconds)
        if not segments:
            logger.info("No valid cue blocks found, falling back to prose splitting")

    if not segments:
        segments = normalize_segments(
            split_prose(raw, duration_seconds, max_chars=MAX_TRANSCRIPT_TEXT_CHARS),
            duration_seconds,
        )

    if not segments:
        return _build([], raw[:MAX_TRANSCRIPT_TEXT_CHARS])
    return _build(segments)


def ingest_transcript(
    transcript: str | None = None,
    cues: Sequence[object] | None = None,
    duration_seconds: float | None = None,
) -> NormalizedTranscript:
    """Validate and normalize a transcript submission.

    Raises ValidationError for oversized raw text, or when neither text
    nor cues yield anything usable.
    """
    raw_length = len((transcript or "").strip())
    if raw_length > MAX_TRANSCRIPT_TEXT_CHARS and not _has_cues(cues):
        raise ValidationError(f"transcript is too long (max {MAX_TRANSCRIPT_TEXT_CHARS} chars)")

    parsed = parse_transcript(transcript, cues, duration_seconds)
    if not parsed.transcript_text:
        raise ValidationError("Provide transcript text or cues/segments")
    if len(parsed.transcript_text) > MAX_TRANSCRIPT_TEXT_CHARS:
        raise ValidationError(f"transcript is too long (max {MAX_TRANSCRIPT_TEXT_CHARS} chars)")

    logger.info(
        "Ingested transcript: %d segments, %d words",
        parsed.segment_count,
        parsed.word_count,
    )
    return parsed


def resolve_transcript_for_read(
    transcript: str | None = None,
    segments: Sequence[object] | None = None,
    duration_seconds: float | None = None,
) -> NormalizedTranscript:
    """Rebuild a NormalizedTranscript from what a store holds."""
    if _has_cues(segments):
        normalized = normalize_segments(segments, duration_seconds)
        stored_text = (transcript or "").strip()
        return _build(normalized, stored_text or None)
    return parse_transcript(transcript, None, duration_seconds)


__all__ = [
    "MAX_TRANSCRIPT_TEXT_CHARS",
    "detect_shape",
    "format_timestamp",
    "ingest_transcript",
    "normalize_segments",
    "parse_timestamp_ms",
    "parse_transcript",
    "resolve_transcript_for_read",
]
