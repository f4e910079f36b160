"""Tests for question-driven context retrieval and transcript filtering."""

from vidqa.retrieval import (
    MAX_MATCHED_SEGMENTS,
    filter_segments,
    parse_time_query,
    resolve_time_bound,
    question_tokens,
    retrieve_context,
)
from vidqa.schemas import TranscriptSegment
from vidqa.transcript import ingest_transcript


def _segments(*texts: str) -> list[TranscriptSegment]:
    return [
        TranscriptSegment(index=i, start_ms=(i - 1) * 1000, end_ms=i * 1000, text=text)
        for i, text in enumerate(texts, 1)
    ]


def test_question_tokens_drop_short_words() -> None:
    assert question_tokens("Is it OK to borrow?") == ["borrow"]
    assert question_tokens(None) == []


def test_matches_are_returned_in_video_order() -> None:
    segments = _segments("ownership basics", "borrow checker", "ownership and borrowing rules")
    excerpt = retrieve_context(segments, "ownership borrowing")
    assert excerpt == "ownership basics ownership and borrowing rules"


def test_best_matches_are_capped() -> None:
    segments = _segments(*(f"alpha {i:02d}" for i in range(20)))
    excerpt = retrieve_context(segments, "alpha")
    assert "alpha 15" in excerpt
    assert "alpha 16" not in excerpt
    assert excerpt.count("alpha") == MAX_MATCHED_SEGMENTS


def test_higher_scores_win_the_cap() -> None:
    texts = [f"filler {i:02d}" for i in range(20)] + ["filler with the gamma ray"]
    excerpt = retrieve_context(_segments(*texts), "filler gamma")
    assert "gamma ray" in excerpt
    assert excerpt.endswith("gamma ray")


def test_falls_back_to_transcript_head() -> None:
    segments = _segments("first words", "second words")
    assert retrieve_context(segments, "") == "first words second words"
    assert retrieve_context(segments, "is it?") == "first words second words"
    assert retrieve_context(segments, "nothing matches here") == "first words second words"
    assert retrieve_context(segments, None, max_chars=5) == "first"


def test_text_without_segments() -> None:
    assert retrieve_context([], "anything", transcript_text="plain transcript") == "plain transcript"
    assert retrieve_context(None, "anything") == ""


def test_excerpt_respects_max_chars() -> None:
    segments = _segments("needle " + "x" * 400, "needle " + "y" * 400)
    assert len(retrieve_context(segments, "needle", max_chars=100)) == 100


def test_filter_by_query_and_window() -> None:
    transcript = ingest_transcript("Alpha beta gamma. Delta epsilon zeta.", duration_seconds=12)
    matched = filter_segments(transcript.segments, "delta", 2000, 12_000)
    assert len(matched) == 1
    assert "delta" in matched[0].text.lower()


def test_filter_window_uses_overlap() -> None:
    segments = _segments("one", "two", "three")
    assert [s.text for s in filter_segments(segments, "", 1500, 2500)] == ["two", "three"]
    assert [s.text for s in filter_segments(segments, "", None, 999)] == ["one"]
    assert filter_segments(segments, "TWO") == [segments[1]]


def test_parse_time_query() -> None:
    assert parse_time_query("01:30") == 90_000
    assert parse_time_query("") is None
    assert parse_time_query(None) is None
    assert parse_time_query("later") is None


def test_resolve_time_bound_prefers_clock_value() -> None:
    assert resolve_time_bound("01:30", 5) == 90_000
    assert resolve_time_bound(None, 2.5) == 2500
    assert resolve_time_bound("junk", 2.5) == 2500
    assert resolve_time_bound(None, None) is None
    assert resolve_time_bound("", -1) is None
    assert resolve_time_bound(None, float("inf")) is None
    assert resolve_time_bound(None, 1e300) is None
