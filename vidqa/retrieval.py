"""Context retrieval — pick the transcript excerpt that answers a question.

Scoring is plain keyword overlap: one point per question token (longer than
two characters) found inside a segment's text. The best sixteen segments
are put back in video order so the excerpt reads chronologically.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

from .context import tokenize, trim_to
from .schemas import TranscriptSegment
from .transcript import MAX_TRANSCRIPT_TEXT_CHARS
from .transcript.segments import build_transcript_text
from .transcript.timestamps import MAX_TIMESTAMP_VALUE, parse_timestamp_ms

MAX_CONTEXT_CHARS = 5000
MAX_MATCHED_SEGMENTS = 16
MIN_TOKEN_LENGTH = 3


def question_tokens(question: str | None) -> list[str]:
    return [token for token in tokenize(question) if len(token) >= MIN_TOKEN_LENGTH]


def retrieve_context(
    segments: Sequence[TranscriptSegment] | None,
    question: str | None,
    max_chars: int = MAX_CONTEXT_CHARS,
    transcript_text: str | None = None,
) -> str:
    """Bounded excerpt of the transcript most relevant to the question.

    Falls back to the head of the transcript when there is no question,
    no usable token, or no segment matches.
    """
    segments = list(segments or [])
    if transcript_text is None:
        transcript_text = build_transcript_text(segments, MAX_TRANSCRIPT_TEXT_CHARS)
    plain = trim_to(transcript_text, max_chars)

    if not plain and not segments:
        return ""

    tokens = question_tokens(question)
    if not segments or not tokens:
        return plain

    scored: list[tuple[int, int, str]] = []
    for position, segment in enumerate(segments):
        text = segment.text.strip()
        if not text:
            continue
        haystack = text.lower()
        score = sum(1 for token in tokens if token in haystack)
        if score > 0:
            scored.append((score, position, text))

    if not scored:
        return plain

    best = sorted(scored, key=lambda row: (-row[0], row[1]))[:MAX_MATCHED_SEGMENTS]
    chronological = sorted(best, key=lambda row: row[1])
    excerpt = trim_to(" ".join(text for _, _, text in chronological), max_chars)
    return excerpt or plain


def filter_segments(
    segments: Sequence[TranscriptSegment] | None,
    query: str | None = "",
    from_ms: int | None = None,
    to_ms: int | None = None,
) -> list[TranscriptSegment]:
    """Segments overlapping [from_ms, to_ms] whose text contains the query."""
    filtered = list(segments or [])

    if from_ms is not None and from_ms >= 0:
        filtered = [segment for segment in filtered if segment.end_ms >= from_ms]

    if to_ms is not None and to_ms >= 0:
        filtered = [segment for segment in filtered if segment.start_ms <= to_ms]

    needle = (query or "").strip().lower()
    if needle:
        filtered = [segment for segment in filtered if needle in segment.text.lower()]

    return filtered


def parse_time_query(value: object) -> int | None:
    """Parse a from/to bound given as seconds, milliseconds or clock time."""
    if value is None or value == "":
        return None
    return parse_timestamp_ms(value)


def resolve_time_bound(value: object, seconds: float | None = None) -> int | None:
    """A from/to bound; an explicit seconds count is used when value is absent or unparseable."""
    parsed = parse_time_query(value)
    if parsed is not None or seconds is None:
        return parsed
    if not 0 <= seconds < MAX_TIMESTAMP_VALUE:
        return None
    return math.floor(seconds * 1000)
