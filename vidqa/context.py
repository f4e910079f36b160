"""Context assessment — how much grounding a video offers, and message classifiers.

Descriptions and summaries that are short or mostly repeated words
("video video video ...") carry no usable context and count as absent.
"""

from __future__ import annotations

import re

from .schemas import ContextMeta, ContextQuality

MAX_DESCRIPTION_CHARS = 3000
MAX_SUMMARY_CHARS = 1200
MIN_INFORMATIVE_WORDS = 8
MIN_UNIQUE_RATIO = 0.4
MAX_SMALL_TALK_CHARS = 16

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")

_SMALL_TALK_PATTERNS = [
    re.compile(r"^hi+$", re.I),
    re.compile(r"^hello+$", re.I),
    re.compile(r"^hey+$", re.I),
    re.compile(r"^yo+$", re.I),
    re.compile(r"^hola+$", re.I),
    re.compile(r"^namaste+$", re.I),
    re.compile(r"^good\s+(morning|afternoon|evening|night)$", re.I),
    re.compile(r"^how are you(\?)?$", re.I),
    re.compile(r"^thanks?(\s+you)?$", re.I),
    re.compile(r"^thank\s+you$", re.I),
    re.compile(r"^ok(ay)?$", re.I),
]

_CONTEXT_SOURCE_PATTERNS = [
    re.compile(r"\bdo you watch\b", re.I),
    re.compile(r"\bdid you watch\b", re.I),
    re.compile(r"\bhave you watched\b", re.I),
    re.compile(r"\bwatched this video\b", re.I),
    re.compile(r"\bdo you access\b", re.I),
    re.compile(r"\bdid you access\b", re.I),
    re.compile(r"\bhow do you know\b", re.I),
    re.compile(r"\bwhat context\b", re.I),
    re.compile(r"\bwhere did you get\b", re.I),
]


def trim_to(value: object, max_length: int) -> str:
    if value is None:
        return ""
    return str(value).strip()[:max_length]


def tokenize(value: object) -> list[str]:
    """Lowercase, split on whitespace, keep [a-z0-9] per token, drop empties."""
    if value is None:
        return []
    tokens = (_NON_ALNUM_RE.sub("", part) for part in str(value).lower().split())
    return [token for token in tokens if token]


def is_low_information_text(value: object) -> bool:
    words = tokenize(value)
    if len(words) < MIN_INFORMATIVE_WORDS:
        return True
    return len(set(words)) / len(words) < MIN_UNIQUE_RATIO


def sanitize_context_text(value: object, max_length: int) -> str:
    """Trimmed text, or "" when it carries too little information."""
    text = trim_to(value, max_length)
    if not text or is_low_information_text(text):
        return ""
    return text


def assess_context(
    description: str | None = None,
    summary: str | None = None,
    transcript_text: str | None = None,
) -> ContextMeta:
    transcript_chars = len((transcript_text or "").strip())
    has_transcript = transcript_chars > 0
    has_description = bool(sanitize_context_text(description, MAX_DESCRIPTION_CHARS))
    has_summary = bool(sanitize_context_text(summary, MAX_SUMMARY_CHARS))

    if has_transcript:
        quality = ContextQuality.RICH
    elif has_summary or has_description:
        quality = ContextQuality.LIMITED
    else:
        quality = ContextQuality.MINIMAL

    return ContextMeta(
        has_transcript=has_transcript,
        transcript_chars=transcript_chars,
        has_description=has_description,
        has_summary=has_summary,
        quality=quality,
    )


def is_small_talk(message: str | None) -> bool:
    """Greeting or acknowledgement short enough to answer without the model."""
    text = (message or "").strip()
    if not text or len(text) > MAX_SMALL_TALK_CHARS:
        return False
    return any(pattern.match(text) for pattern in _SMALL_TALK_PATTERNS)


def is_context_source_question(message: str | None) -> bool:
    """Questions about where answers come from ("did you watch this video?")."""
    text = (message or "").strip()
    if not text:
        return False
    return any(pattern.search(text) for pattern in _CONTEXT_SOURCE_PATTERNS)
