"""Tests for the SQLite store."""

from datetime import datetime, timedelta, timezone

import pytest

from vidqa.errors import ForbiddenError, NotFoundError, NotReadyError
from vidqa.schemas import ChatRole
from vidqa.transcript import ingest_transcript


def test_video_round_trip_with_transcript(store) -> None:
    store.save_video("v1", "owner", title="Title", description="Desc", duration=30.5)
    assert store.get_video("v1").transcript_text == ""

    store.save_transcript("v1", ingest_transcript(cues=[{"startMs": 100, "endMs": 900, "text": "hi"}]),
                          language="en", source="MANUAL")
    video = store.get_video("v1")
    assert video.duration == 30.5
    assert video.transcript_text == "hi"
    assert video.transcript_segments[0]["startMs"] == 100
    assert (video.transcript_language, video.transcript_source) == ("en", "MANUAL")

    assert store.delete_transcript("v1") is True
    assert store.delete_transcript("v1") is False
    assert store.get_video("v1").transcript_segments == []


def test_load_video_access_rules(store) -> None:
    store.save_video("public", "owner")
    store.save_video("private", "owner", is_published=False)
    store.save_video("pending", "owner", processing_status="PROCESSING")

    assert store.load_video("public", "anyone").id == "public"
    assert store.load_video("private", "owner").id == "private"
    with pytest.raises(ForbiddenError):
        store.load_video("private", "someone-else")
    with pytest.raises(NotReadyError):
        store.load_video("pending", "owner")
    with pytest.raises(NotFoundError):
        store.load_video("missing", "owner")


def test_update_summary(store) -> None:
    store.save_video("v1", "owner")
    store.update_summary("v1", "- point one")
    assert store.get_video("v1").summary == "- point one"


def test_session_turns_are_chronological(store) -> None:
    session = store.create_session("u1", None, "General assistant chat", "Session created.")
    assert store.get_session(session.id).user_id == "u1"
    assert store.get_session("nope") is None

    for i in range(3):
        user_turn, assistant_turn = store.append_turn_pair(session.id, f"q{i}", f"a{i}")
        assert (user_turn.role, assistant_turn.role) == (ChatRole.USER, ChatRole.ASSISTANT)
        assert assistant_turn.id > user_turn.id

    turns = store.fetch_recent_turns(session.id, 40)
    assert [t.content for t in turns] == ["Session created.", "q0", "a0", "q1", "a1", "q2", "a2"]
    assert turns[0].role == ChatRole.SYSTEM

    latest = store.fetch_recent_turns(session.id, 3)
    assert [t.content for t in latest] == ["a1", "q2", "a2"]


def test_usage_counts_by_kind_and_time(store) -> None:
    store.record_usage("u1", "AI_CHAT", {"videoId": "v1"})
    store.record_usage("u1", "AI_SUMMARY")
    store.record_usage("u1", "OTHER")
    store.record_usage("u2", "AI_CHAT")

    an_hour_ago = datetime.now(timezone.utc) - timedelta(hours=1)
    assert store.count_usage("u1", ["AI_CHAT", "AI_SUMMARY"], an_hour_ago) == 2
    assert store.count_usage("u1", ["AI_CHAT"], an_hour_ago) == 1
    assert store.count_usage("u1", [], an_hour_ago) == 0

    in_an_hour = datetime.now(timezone.utc) + timedelta(hours=1)
    assert store.count_usage("u1", ["AI_CHAT", "AI_SUMMARY"], in_an_hour) == 0


def test_list_sessions_pages_by_recent_activity(store) -> None:
    first = store.create_session("u1", None, "first", "Session created.")
    second = store.create_session("u1", "v1", "second")
    store.create_session("u2", None, "someone else's")
    store.append_turn_pair(first.id, "q", "a")

    listings, total = store.list_sessions("u1", limit=10)
    assert total == 2
    assert [s.title for s in listings] == ["first", "second"]
    assert listings[0].message_count == 3
    assert listings[0].last_message.content == "a"
    assert (listings[1].message_count, listings[1].last_message) == (0, None)

    page_two, total = store.list_sessions("u1", limit=1, offset=1)
    assert ([s.id for s in page_two], total) == ([second.id], 2)


def test_list_turns_pages_oldest_first(store) -> None:
    session = store.create_session("u1", None, "chat", "Session created.")
    store.append_turn_pair(session.id, "q0", "a0")
    store.append_turn_pair(session.id, "q1", "a1")

    turns, total = store.list_turns(session.id, limit=2, offset=2)
    assert total == 5
    assert [t.content for t in turns] == ["a0", "q1"]


def test_rename_and_delete_session(store) -> None:
    session = store.create_session("u1", None, "old", "Session created.")
    store.append_turn_pair(session.id, "q", "a")

    renamed = store.rename_session(session.id, "new")
    assert renamed.title == "new"
    assert renamed.updated_at >= session.updated_at
    assert store.rename_session("missing", "x") is None

    assert store.delete_session(session.id) is True
    assert store.get_session(session.id) is None
    assert store.list_turns(session.id, limit=10) == ([], 0)
    assert store.delete_session(session.id) is False


def test_clear_sessions_by_user_and_video(store) -> None:
    keep = store.create_session("u1", "v2", "other video")
    store.create_session("u1", "v1", "a")
    gone = store.create_session("u1", "v1", "b")
    store.append_turn_pair(gone.id, "q", "a")
    store.create_session("u2", "v1", "not mine")

    assert store.clear_sessions("u1", video_id="v1") == 2
    assert store.list_turns(gone.id, limit=10)[1] == 0
    assert [s.id for s in store.list_sessions("u1", limit=10)[0]] == [keep.id]

    assert store.clear_sessions("u1") == 1
    assert store.list_sessions("u2", limit=10)[1] == 1


def test_clear_and_delete_turns(store) -> None:
    session = store.create_session("u1", None, "chat", "Session created.")
    user_turn, assistant_turn = store.append_turn_pair(session.id, "q0", "a0")
    store.append_turn_pair(session.id, "q1", "a1")

    assert store.get_turn(session.id, user_turn.id).content == "q0"
    assert store.get_turn("other-session", user_turn.id) is None
    assert store.next_turn(session.id, user_turn.id).id == assistant_turn.id

    assert store.delete_turns(session.id, [user_turn.id, assistant_turn.id]) == 2
    assert store.delete_turns(session.id, []) == 0

    assert store.clear_turns(session.id) == 2
    assert [t.role for t in store.fetch_recent_turns(session.id, 40)] == [ChatRole.SYSTEM]
    assert store.clear_turns(session.id, keep_system=False) == 1
