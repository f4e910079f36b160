"""Tests for context quality and message classification."""

from vidqa.context import (
    assess_context,
    is_context_source_question,
    is_low_information_text,
    is_small_talk,
    sanitize_context_text,
)
from vidqa.schemas import ContextQuality

DESCRIPTION = "A walkthrough of ownership, borrowing and lifetimes in Rust with small examples."


def test_quality_tiers() -> None:
    assert assess_context().quality == ContextQuality.MINIMAL
    assert assess_context(description=DESCRIPTION).quality == ContextQuality.LIMITED
    assert assess_context(summary=DESCRIPTION).quality == ContextQuality.LIMITED

    rich = assess_context(transcript_text="  some transcript  ")
    assert rich.quality == ContextQuality.RICH
    assert rich.has_transcript is True
    assert rich.transcript_chars == len("some transcript")


def test_repetitive_description_does_not_count() -> None:
    meta = assess_context(description="video " * 40, summary="short summary")
    assert meta.has_description is False
    assert meta.has_summary is False
    assert meta.quality == ContextQuality.MINIMAL


def test_low_information_text() -> None:
    assert is_low_information_text("too short to use")
    assert is_low_information_text("buy buy buy buy now now now now")
    assert not is_low_information_text(DESCRIPTION)
    assert sanitize_context_text(DESCRIPTION, 20) == ""
    assert sanitize_context_text(f"  {DESCRIPTION}  ", 3000) == DESCRIPTION


def test_small_talk() -> None:
    for message in ("hi", "Hiii", "hello", "hey", "Good morning", "how are you?", "thanks",
                    "thank you", "ok", "okay", "namaste"):
        assert is_small_talk(message), message
    for message in ("", "hi, what is ownership?", "hello there my friend", "thanks for the video"):
        assert not is_small_talk(message), message


def test_context_source_question() -> None:
    assert is_context_source_question("Did you watch this video?")
    assert is_context_source_question("how do you know that")
    assert is_context_source_question("What context are you using?")
    assert not is_context_source_question("What is a lifetime?")
    assert not is_context_source_question(None)
