"""Shared fixtures: a throwaway SQLite store and a scripted generator."""

from __future__ import annotations

import pytest

from vidqa.schemas import GenerationResult
from vidqa.service import ConversationPipeline
from vidqa.store import ChatStore


class FakeGenerator:
    """Stands in for the OpenAI-backed generator; records every request."""

    def __init__(self, text: str = "Generated answer.", error: Exception | None = None, configured: bool = True):
        self.text = text
        self.error = error
        self.configured = configured
        self.requests = []

    def is_configured(self) -> bool:
        return self.configured

    def generate(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return GenerationResult(text=self.text, provider="fake", model="fake-1")


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    for key in ("VIDQA_LLM_API_KEY", "OPENAI_API_KEY", "VIDQA_LLM_MODELS", "VIDQA_LLM_MODEL",
                "VIDQA_MS_THRESHOLD", "VIDQA_MAX_OUTPUT_CHARS", "VIDQA_DAILY_MESSAGE_LIMIT"):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def store(tmp_path) -> ChatStore:
    return ChatStore(tmp_path / "vidqa.sqlite3")


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def pipeline(store, generator) -> ConversationPipeline:
    return ConversationPipeline(store, generator, daily_limit=5)


@pytest.fixture
def rust_video(store):
    store.save_video(
        "v1",
        "owner",
        title="Rust ownership explained",
        description="A walkthrough of ownership, borrowing and lifetimes in Rust with small examples.",
        duration=60,
    )
    return "v1"
