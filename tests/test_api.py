"""Tests for the FastAPI adapter."""

import pytest
from fastapi.testclient import TestClient

from vidqa.api import app, get_pipeline
from vidqa.service import ConversationPipeline

SRT = "1\n00:00:01,000 --> 00:00:03,000\nHello everyone\n\n2\n00:00:03,200 --> 00:00:05,500\nWelcome back"


@pytest.fixture
def client(store, generator, rust_video):
    pipeline = ConversationPipeline(store, generator, daily_limit=5)
    app.dependency_overrides[get_pipeline] = lambda: pipeline
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client) -> None:
    assert client.get("/health").json() == {"status": "ok"}


def test_transcript_upload_and_read(client) -> None:
    resp = client.post("/videos/v1/transcript", json={"transcript": SRT, "language": "en"},
                       headers={"X-User-Id": "owner"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["segmentCount"] == 2
    assert body["segments"][0]["startMs"] == 1000

    resp = client.get("/videos/v1/transcript", params={"q": "welcome", "from": "00:02"},
                      headers={"X-User-Id": "viewer"})
    page = resp.json()
    assert page["hasTranscript"] is True
    assert page["language"] == "en"
    assert [s["text"] for s in page["segments"]] == ["Welcome back"]

    resp = client.get("/videos/v1/transcript", params={"to": "00:02"}, headers={"X-User-Id": "viewer"})
    assert [s["text"] for s in resp.json()["segments"]] == ["Hello everyone"]

    resp = client.delete("/videos/v1/transcript", headers={"X-User-Id": "owner"})
    assert resp.json() == {"videoId": "v1", "deleted": True}


def test_errors_map_to_status_codes(client) -> None:
    resp = client.post("/videos/v1/transcript", json={"transcript": SRT}, headers={"X-User-Id": "viewer"})
    assert resp.status_code == 403
    assert "owner" in resp.json()["detail"]

    resp = client.post("/videos/missing/ask", json={"question": "why?"}, headers={"X-User-Id": "viewer"})
    assert resp.status_code == 404

    resp = client.post("/videos/v1/ask", json={"question": ""}, headers={"X-User-Id": "viewer"})
    assert resp.status_code == 400


def test_user_header_is_required(client) -> None:
    assert client.post("/videos/v1/ask", json={"question": "why?"}).status_code == 422


def test_ask(client) -> None:
    resp = client.post("/videos/v1/ask", json={"question": "What is ownership?"}, headers={"X-User-Id": "viewer"})
    body = resp.json()
    assert body["answer"] == "Generated answer."
    assert body["ai"]["quota"]["usedToday"] == 1
    assert body["context"]["quality"] == "LIMITED"


def test_summary_endpoints(client) -> None:
    headers = {"X-User-Id": "owner"}
    assert client.get("/videos/v1/summary", headers=headers).json()["source"] == "none"
    created = client.post("/videos/v1/summary", headers=headers).json()
    assert created["summary"] == "Generated answer."
    forced = client.post("/videos/v1/summary", json={"force": True}, headers=headers).json()
    assert forced["source"] == "fake"


def test_session_chat(client) -> None:
    headers = {"X-User-Id": "viewer"}
    resp = client.post("/sessions", json={"videoId": "v1"}, headers=headers)
    assert resp.status_code == 201
    session_id = resp.json()["id"]

    first = client.post(f"/sessions/{session_id}/messages", json={"message": "What is ownership?"},
                        headers=headers).json()
    assert first["reply"] == "Generated answer."
    assert first["userTurn"]["role"] == "USER"

    second = client.post(f"/sessions/{session_id}/messages", json={"message": "what is ownership?"},
                         headers=headers).json()
    assert second["ai"]["provider"] == "session-cache"

    other = client.post(f"/sessions/{session_id}/messages", json={"message": "hi"},
                        headers={"X-User-Id": "intruder"})
    assert other.status_code == 404


def test_transcript_cue_aliases_and_second_bounds(client) -> None:
    headers = {"X-User-Id": "owner"}
    cues = [{"start": 0, "end": 2, "text": "Intro"}, {"start": 2, "end": 4, "text": "Middle"},
            {"start": 4, "end": 6, "text": "Outro"}]
    for key in ("segments", "transcriptCues"):
        resp = client.post("/videos/v1/transcript", json={key: cues}, headers=headers)
        assert resp.json()["segmentCount"] == 3, key

    page = client.get("/videos/v1/transcript", params={"fromSeconds": 2.5, "toSeconds": "3.5"},
                      headers=headers).json()
    assert [s["text"] for s in page["segments"]] == ["Middle"]
    assert (page["fromMs"], page["toMs"]) == (2500, 3500)

    # a parseable clock bound wins over the seconds form
    page = client.get("/videos/v1/transcript", params={"from": "00:04", "fromSeconds": 0},
                      headers=headers).json()
    assert page["fromMs"] == 4000

    page = client.get("/videos/v1/transcript", params={"page": 2, "limit": 2}, headers=headers).json()
    assert [s["text"] for s in page["segments"]] == ["Outro"]
    assert page["pagination"] == {
        "currentPage": 2, "limit": 2, "totalItems": 3, "totalPages": 2,
        "hasPrevPage": True, "hasNextPage": False,
    }


def test_session_management_endpoints(client) -> None:
    headers = {"X-User-Id": "viewer"}
    session_id = client.post("/sessions", json={"videoId": "v1"}, headers=headers).json()["id"]
    other_id = client.post("/sessions", json={}, headers=headers).json()["id"]
    first = client.post(f"/sessions/{session_id}/messages", json={"message": "hello"}, headers=headers).json()

    listed = client.get("/sessions", headers=headers).json()
    assert [s["id"] for s in listed["sessions"]] == [session_id, other_id]
    assert listed["sessions"][0]["lastMessage"]["role"] == "ASSISTANT"

    messages = client.get(f"/sessions/{session_id}/messages", headers=headers).json()
    assert [m["role"] for m in messages["messages"]] == ["SYSTEM", "USER", "ASSISTANT"]
    assert client.get(f"/sessions/{session_id}/messages", headers={"X-User-Id": "intruder"}).status_code == 404

    renamed = client.patch(f"/sessions/{session_id}", json={"title": "Ownership notes"}, headers=headers)
    assert renamed.json()["title"] == "Ownership notes"
    assert client.patch(f"/sessions/{session_id}", json={"title": ""}, headers=headers).status_code == 400

    resp = client.delete(f"/sessions/{session_id}/messages/{first['userTurn']['id']}", headers=headers)
    assert resp.json()["deletedCount"] == 2
    assert resp.json()["cascadeApplied"] is True

    resp = client.delete(f"/sessions/{session_id}/messages", params={"keepSystem": "false"}, headers=headers)
    assert resp.json() == {"sessionId": session_id, "deletedMessages": 1, "keepSystem": False}

    resp = client.delete(f"/sessions/{other_id}", headers=headers)
    assert resp.json() == {"sessionId": other_id, "deleted": True}

    resp = client.delete("/sessions", params={"videoId": "v1"}, headers=headers)
    assert resp.json() == {"deletedSessions": 1, "filter": {"videoId": "v1"}}
    assert client.get("/sessions", headers=headers).json()["sessions"] == []
