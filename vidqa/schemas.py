"""vidqa data model — transcripts, context health, chat turns and replies.

Attributes are snake_case; every field also answers to its camelCase alias
(startMs, transcriptText, hasTranscript, ...) which is the JSON shape the
store persists and transport layers return.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class _Model(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TranscriptSegment(_Model):
    index: int = Field(ge=1)
    start_ms: int = Field(ge=0)
    end_ms: int = Field(ge=0)
    start_time: str = ""  # "HH:MM:SS.mmm"
    end_time: str = ""
    text: str = Field(min_length=1, max_length=500)

    @model_validator(mode="after")
    def _check_bounds(self) -> "TranscriptSegment":
        if self.end_ms < self.start_ms:
            raise ValueError("end_ms must not precede start_ms")
        return self


class NormalizedTranscript(_Model):
    segments: list[TranscriptSegment] = Field(default_factory=list)
    transcript_text: str = ""
    word_count: int = 0
    segment_count: int = 0


class ContextQuality(str, Enum):
    MINIMAL = "MINIMAL"
    LIMITED = "LIMITED"
    RICH = "RICH"


class ContextMeta(_Model):
    has_transcript: bool = False
    transcript_chars: int = 0
    has_description: bool = False
    has_summary: bool = False
    quality: ContextQuality = ContextQuality.MINIMAL


class ChatRole(str, Enum):
    SYSTEM = "SYSTEM"
    USER = "USER"
    ASSISTANT = "ASSISTANT"


class ChatTurn(_Model):
    id: int
    session_id: str
    role: ChatRole
    content: str
    created_at: datetime


class ChatSession(_Model):
    id: str
    user_id: str
    video_id: Optional[str] = None
    title: str = ""
    created_at: datetime
    updated_at: datetime


class SessionListing(ChatSession):
    message_count: int = 0
    last_message: Optional[ChatTurn] = None


class VideoRecord(_Model):
    id: str
    owner_id: str
    title: str = ""
    description: str = ""
    summary: str = ""
    duration: Optional[float] = None  # seconds
    is_published: bool = True
    processing_status: str = "COMPLETED"
    transcript_text: str = ""
    transcript_segments: list[dict[str, Any]] = Field(default_factory=list)
    transcript_language: Optional[str] = None
    transcript_source: Optional[str] = None


class GenerationRequest(_Model):
    system_instruction: str = ""
    user_prompt: str
    temperature: float = 0.4
    max_output_tokens: int = 500


class GenerationResult(_Model):
    text: str
    provider: str
    model: str
    warning: Optional[str] = None


class QuotaStatus(_Model):
    used_today: int
    daily_limit: int
    remaining: int


class ProviderInfo(_Model):
    provider: str
    model: str = "none"
    warning: Optional[str] = None
    quota: Optional[QuotaStatus] = None


class ChatReply(_Model):
    session_id: str
    reply: str
    context: ContextMeta
    ai: ProviderInfo
    user_turn: ChatTurn
    assistant_turn: ChatTurn


class AnswerReply(_Model):
    video_id: str
    question: str
    answer: str
    context: ContextMeta
    ai: ProviderInfo


class Pagination(_Model):
    current_page: int = 1
    limit: int = 10
    total_items: int = 0
    total_pages: int = 0
    has_prev_page: bool = False
    has_next_page: bool = False


class SummaryReply(_Model):
    video_id: str
    summary: Optional[str] = None
    source: str = "existing"
    context: ContextMeta
    ai: Optional[ProviderInfo] = None


class TranscriptPage(_Model):
    video_id: str
    title: str = ""
    transcript_text: str = ""
    has_transcript: bool = False
    language: Optional[str] = None
    source: Optional[str] = None
    word_count: int = 0
    segment_count: int = 0
    segments: list[TranscriptSegment] = Field(default_factory=list)
    query: Optional[str] = None
    from_ms: Optional[int] = None
    to_ms: Optional[int] = None
    pagination: Pagination = Field(default_factory=Pagination)


class SessionPage(_Model):
    sessions: list[SessionListing] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)


class MessagePage(_Model):
    session: ChatSession
    messages: list[ChatTurn] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)
