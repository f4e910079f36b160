"""Cue-block parsing — SRT / WebVTT style text with "-->" time ranges.

Blocks are separated by blank lines. A block may open with a numeric
sequence line; its first line containing "-->" is the time range and the
lines after it are the caption text.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from .segments import clean_cue_text
from .timestamps import parse_timestamp_ms

logger = logging.getLogger(__name__)

ARROW = "-->"

_BLOCK_SPLIT_RE = re.compile(r"\n\s*\n")
_TAG_RE = re.compile(r"<[^>]+>")


def has_cue_blocks(text: str) -> bool:
    return ARROW in text


def _block_lines(block: str) -> list[str]:
    return [line.strip() for line in block.split("\n") if line.strip()]


def _parse_block(lines: list[str]) -> dict[str, Any] | None:
    if lines[0].upper().startswith("WEBVTT"):
        return None
    if lines[0].isdigit():
        lines = lines[1:]
    if not lines:
        return None

    time_index = next((i for i, line in enumerate(lines) if ARROW in line), -1)
    if time_index == -1:
        return None

    left, _, right = lines[time_index].partition(ARROW)
    right_tokens = right.split()
    start_ms = parse_timestamp_ms(left)
    end_ms = parse_timestamp_ms(right_tokens[0] if right_tokens else "")
    if start_ms is None or end_ms is None or end_ms <= start_ms:
        return None

    text = clean_cue_text(_TAG_RE.sub("", " ".join(lines[time_index + 1:])))
    if not text:
        return None

    return {"startMs": start_ms, "endMs": end_ms, "text": text}


def parse_cue_blocks(raw_text: str) -> list[dict[str, Any]]:
    """Parse cue blocks into raw cue dicts. Invalid blocks are skipped."""
    blocks = _BLOCK_SPLIT_RE.split(raw_text.replace("\r", ""))
    cues: list[dict[str, Any]] = []
    skipped = 0

    for block in blocks:
        lines = _block_lines(block)
        if not lines:
            continue
        cue = _parse_block(lines)
        if cue is None:
            skipped += 1
            continue
        cues.append(cue)

    logger.debug("Parsed %d cue blocks (%d skipped)", len(cues), skipped)
    return cues
