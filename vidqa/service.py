"""vidqa service — the conversation pipeline.

One inbound chat message flows through:

    received → session cache hit?        → respond (no model, no quota)
             → small talk?               → respond (rule-based)
             → question about sources?   → respond (rule-based)
             → daily quota check         → QuotaExceededError
             → retrieve + assemble prompt
             → generate (or fallback text)
             → persist turn pair, record usage → respond

Handlers keep no state between calls. Sessions, turns and usage counts are
re-read from the store on every request. The quota check is read-then-compare:
two concurrent requests from one user can both pass it, so the daily limit
can be overshot by a small margin.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from . import config
from .context import assess_context, is_context_source_question, is_small_talk, trim_to
from .errors import ForbiddenError, NotFoundError, QuotaExceededError, ValidationError
from .generator import (
    OpenAICompatibleGenerator,
    build_answer_fallback,
    build_summary_fallback,
    generate_or_fallback,
)
from .prompts import (
    CHAT_SYSTEM_INSTRUCTION,
    GENERAL_SYSTEM_INSTRUCTION,
    NO_VIDEO_CONTEXT,
    QUESTION_SYSTEM_INSTRUCTION,
    SUMMARY_SYSTEM_INSTRUCTION,
    build_chat_prompt,
    build_context_source_reply,
    build_general_fallback,
    build_question_prompt,
    build_small_talk_reply,
    build_summary_prompt,
    build_video_context_text,
    default_session_title,
)
from .retrieval import MAX_CONTEXT_CHARS, filter_segments, retrieve_context
from .schemas import (
    AnswerReply,
    ChatReply,
    ChatRole,
    ChatSession,
    ChatTurn,
    ContextMeta,
    GenerationRequest,
    GenerationResult,
    MessagePage,
    NormalizedTranscript,
    Pagination,
    ProviderInfo,
    QuotaStatus,
    SessionPage,
    SummaryReply,
    TranscriptPage,
    VideoRecord,
)
from .transcript import (
    MAX_TRANSCRIPT_TEXT_CHARS,
    ingest_transcript,
    resolve_transcript_for_read,
)

logger = logging.getLogger(__name__)

MAX_USER_MESSAGE_CHARS = 1500
MAX_SESSION_TITLE_CHARS = 120
MAX_HISTORY_TURNS = 8
CACHE_LOOKBACK_TURNS = 40
MAX_CACHED_REPLY_CHARS = 6000
DEFAULT_DAILY_LIMIT = 40

DEFAULT_PAGE_LIMIT = 10
MAX_SESSIONS_PAGE = 50
MAX_MESSAGES_PAGE = 100
MAX_SEGMENTS_PAGE = 200

JOB_CHAT = "AI_CHAT"
JOB_SUMMARY = "AI_SUMMARY"
QUOTA_JOB_KINDS = (JOB_CHAT, JOB_SUMMARY)

PROVIDER_CACHE = "session-cache"
PROVIDER_RULES = "rule-based"

TRANSCRIPT_SOURCES = {"MANUAL", "AUTO", "IMPORTED"}
SUMMARY_QUESTION = "summarize key points from the full video"


def normalize_comparable(value: object) -> str:
    """Trim, collapse whitespace, lowercase."""
    if value is None:
        return ""
    return " ".join(str(value).split()).lower()


def find_cached_reply(turns: Sequence[ChatTurn], message: str) -> str | None:
    """Newest earlier answer to the same question in this session, if any.

    A USER turn counts only when the very next turn is its ASSISTANT reply.
    """
    wanted = normalize_comparable(message)
    if not wanted or len(turns) < 2:
        return None

    for index in range(len(turns) - 2, -1, -1):
        current, following = turns[index], turns[index + 1]
        if current.role != ChatRole.USER or following.role != ChatRole.ASSISTANT:
            continue
        if normalize_comparable(current.content) == wanted:
            return trim_to(following.content, MAX_CACHED_REPLY_CHARS)
    return None


def local_day_start(now: datetime | None = None) -> datetime:
    """Midnight of the current local day, timezone-aware."""
    current = (now or datetime.now()).astimezone()
    return current.replace(hour=0, minute=0, second=0, microsecond=0)


def normalize_transcript_source(value: str | None) -> str:
    source = (value or "").strip().upper()
    return source if source in TRANSCRIPT_SOURCES else "MANUAL"


def sanitize_pagination(page: int | None, limit: int | None, max_limit: int) -> tuple[int, int]:
    """Page below 1 becomes 1; a limit outside 1..max_limit becomes the default."""
    page = page if page and page >= 1 else 1
    limit = limit if limit and 1 <= limit <= max_limit else DEFAULT_PAGE_LIMIT
    return page, limit


def build_pagination(page: int, limit: int, total: int) -> Pagination:
    total = max(0, total)
    total_pages = -(-total // limit) if total else 0
    return Pagination(
        current_page=page,
        limit=limit,
        total_items=total,
        total_pages=total_pages,
        has_prev_page=page > 1 and total_pages > 0,
        has_next_page=page < total_pages,
    )


class ConversationPipeline:
    """Chat and Q&A orchestration over a store and an optional generator."""

    def __init__(
        self,
        store: Any,
        generator: Any = None,
        daily_limit: int | None = None,
    ) -> None:
        self.store = store
        self.generator = generator if generator is not None else OpenAICompatibleGenerator()
        self.daily_limit = daily_limit or config.get(
            "VIDQA_DAILY_MESSAGE_LIMIT", DEFAULT_DAILY_LIMIT, cast=int
        )

    # ── Helpers ───────────────────────────────────────────────────

    def _transcript_for(self, video: VideoRecord) -> NormalizedTranscript:
        return resolve_transcript_for_read(
            video.transcript_text,
            video.transcript_segments,
            video.duration,
        )

    def _context_meta(self, video: VideoRecord | None, transcript: NormalizedTranscript | None) -> ContextMeta:
        if video is None:
            return assess_context()
        return assess_context(
            video.description,
            video.summary,
            transcript.transcript_text if transcript else "",
        )

    def _owned_session(self, session_id: str, user_id: str) -> ChatSession:
        session_id = (session_id or "").strip()
        if not session_id:
            raise ValidationError("sessionId is required")
        session = self.store.get_session(session_id)
        if session is None or session.user_id != user_id:
            raise NotFoundError("AI session not found")
        return session

    def check_quota(self, user_id: str) -> QuotaStatus:
        """Read today's usage and compare against the limit (soft check)."""
        used = self.store.count_usage(user_id, QUOTA_JOB_KINDS, local_day_start())
        if used >= self.daily_limit:
            logger.info("Daily AI limit reached for user %s (%d/%d)", user_id, used, self.daily_limit)
            raise QuotaExceededError("AI daily limit reached. Try again tomorrow.")
        return QuotaStatus(
            used_today=used + 1,
            daily_limit=self.daily_limit,
            remaining=max(0, self.daily_limit - (used + 1)),
        )

    def _record_usage(self, user_id: str, job_kind: str, payload: dict[str, Any]) -> None:
        try:
            self.store.record_usage(user_id, job_kind, payload)
        except Exception as exc:
            logger.warning("Failed to record %s usage for user %s: %s", job_kind, user_id, exc)

    def _generate(self, request: GenerationRequest, fallback_text: str) -> GenerationResult:
        return generate_or_fallback(self.generator, request, fallback_text)

    def _excerpt(self, transcript: NormalizedTranscript, question: str) -> str:
        return retrieve_context(
            transcript.segments,
            question,
            MAX_CONTEXT_CHARS,
            transcript_text=transcript.transcript_text,
        )

    # ── Chat ──────────────────────────────────────────────────────

    def create_session(
        self,
        user_id: str,
        video_id: str | None = None,
        title: str | None = None,
    ) -> ChatSession:
        video = self.store.load_video(video_id, user_id) if video_id else None
        resolved_title = trim_to(title, MAX_SESSION_TITLE_CHARS) or trim_to(
            default_session_title(video.title if video else None), MAX_SESSION_TITLE_CHARS
        )
        system_message = (
            "Session created for video Q&A." if video else "Session created for general assistant guidance."
        )
        session = self.store.create_session(user_id, video.id if video else None, resolved_title, system_message)
        logger.info("Created AI session %s for user %s", session.id, user_id)
        return session

    def _reply(
        self,
        session_id: str,
        message: str,
        reply_text: str,
        context_meta: ContextMeta,
        ai: ProviderInfo,
    ) -> ChatReply:
        user_turn, assistant_turn = self.store.append_turn_pair(session_id, message, reply_text)
        return ChatReply(
            session_id=session_id,
            reply=assistant_turn.content,
            context=context_meta,
            ai=ai,
            user_turn=user_turn,
            assistant_turn=assistant_turn,
        )

    def handle_chat_message(self, session_id: str, user_id: str, message: str) -> ChatReply:
        session_id = (session_id or "").strip()
        message = trim_to(message, MAX_USER_MESSAGE_CHARS)
        if not session_id:
            raise ValidationError("sessionId is required")
        if not message:
            raise ValidationError("message is required")

        session = self._owned_session(session_id, user_id)
        video = self.store.load_video(session.video_id, user_id) if session.video_id else None
        transcript = self._transcript_for(video) if video else None
        recent = self.store.fetch_recent_turns(session_id, max(MAX_HISTORY_TURNS, CACHE_LOOKBACK_TURNS))
        context_meta = self._context_meta(video, transcript)

        cached = find_cached_reply(recent, message)
        if cached:
            logger.debug("Session cache hit for session %s", session_id)
            return self._reply(session_id, message, cached, context_meta, ProviderInfo(provider=PROVIDER_CACHE))

        if is_small_talk(message):
            reply_text = build_small_talk_reply(video, context_meta)
            return self._reply(session_id, message, reply_text, context_meta, ProviderInfo(provider=PROVIDER_RULES))

        if video is not None and is_context_source_question(message):
            reply_text = build_context_source_reply(video, context_meta)
            return self._reply(session_id, message, reply_text, context_meta, ProviderInfo(provider=PROVIDER_RULES))

        quota = self.check_quota(user_id)

        if video is not None and transcript is not None:
            video_context = build_video_context_text(video, self._excerpt(transcript, message))
            system_instruction = CHAT_SYSTEM_INSTRUCTION
            fallback_text = build_answer_fallback(message, video.title, video.summary or video.description)
        else:
            video_context = NO_VIDEO_CONTEXT
            system_instruction = GENERAL_SYSTEM_INSTRUCTION
            fallback_text = build_general_fallback(message)

        request = GenerationRequest(
            system_instruction=system_instruction,
            user_prompt=build_chat_prompt(video_context, message, recent[-MAX_HISTORY_TURNS:], context_meta),
            temperature=0.35,
            max_output_tokens=500,
        )
        result = self._generate(request, fallback_text)

        reply = self._reply(
            session_id,
            message,
            result.text,
            context_meta,
            ProviderInfo(provider=result.provider, model=result.model, warning=result.warning, quota=quota),
        )
        self._record_usage(user_id, JOB_CHAT, {
            "sessionId": session_id,
            "videoId": session.video_id,
            "provider": result.provider,
            "model": result.model,
        })
        return reply

    # ── Session management ────────────────────────────────────────

    def list_sessions(self, user_id: str, page: int | None = None, limit: int | None = None) -> SessionPage:
        page, limit = sanitize_pagination(page, limit, MAX_SESSIONS_PAGE)
        sessions, total = self.store.list_sessions(user_id, limit, (page - 1) * limit)
        return SessionPage(sessions=sessions, pagination=build_pagination(page, limit, total))

    def get_session_messages(
        self,
        session_id: str,
        user_id: str,
        page: int | None = None,
        limit: int | None = None,
    ) -> MessagePage:
        """A session's turns, oldest first, including the SYSTEM marker."""
        session = self._owned_session(session_id, user_id)
        page, limit = sanitize_pagination(page, limit, MAX_MESSAGES_PAGE)
        turns, total = self.store.list_turns(session.id, limit, (page - 1) * limit)
        return MessagePage(session=session, messages=turns, pagination=build_pagination(page, limit, total))

    def rename_session(self, session_id: str, user_id: str, title: str) -> ChatSession:
        title = trim_to(title, MAX_SESSION_TITLE_CHARS)
        if not title:
            raise ValidationError("title is required")
        session = self._owned_session(session_id, user_id)
        renamed = self.store.rename_session(session.id, title)
        if renamed is None:
            raise NotFoundError("AI session not found")
        return renamed

    def delete_session(self, session_id: str, user_id: str) -> bool:
        session = self._owned_session(session_id, user_id)
        deleted = self.store.delete_session(session.id)
        logger.info("Deleted AI session %s for user %s", session.id, user_id)
        return deleted

    def clear_sessions(self, user_id: str, video_id: str | None = None) -> int:
        return self.store.clear_sessions(user_id, (video_id or "").strip() or None)

    def clear_session_messages(self, session_id: str, user_id: str, keep_system: bool = True) -> int:
        session = self._owned_session(session_id, user_id)
        return self.store.clear_turns(session.id, keep_system=keep_system)

    def delete_session_message(
        self,
        session_id: str,
        user_id: str,
        message_id: int,
        cascade: bool = True,
    ) -> list[int]:
        """Delete one turn; a USER turn takes its ASSISTANT reply with it when cascading.

        Returns the deleted turn ids. SYSTEM turns cannot be deleted.
        """
        session = self._owned_session(session_id, user_id)
        target = self.store.get_turn(session.id, message_id)
        if target is None:
            raise NotFoundError("Message not found")
        if target.role == ChatRole.SYSTEM:
            raise ValidationError("System message cannot be deleted")

        deleted_ids = [target.id]
        if cascade and target.role == ChatRole.USER:
            following = self.store.next_turn(session.id, target.id)
            if following is not None and following.role == ChatRole.ASSISTANT:
                deleted_ids.append(following.id)

        self.store.delete_turns(session.id, deleted_ids)
        return deleted_ids

    # ── One-shot questions ────────────────────────────────────────

    def handle_one_shot_question(self, video_id: str, user_id: str, question: str) -> AnswerReply:
        video_id = (video_id or "").strip()
        question = trim_to(question, MAX_USER_MESSAGE_CHARS)
        if not video_id:
            raise ValidationError("videoId is required")
        if not question:
            raise ValidationError("question is required")

        video = self.store.load_video(video_id, user_id)
        transcript = self._transcript_for(video)
        context_meta = self._context_meta(video, transcript)

        def answer(text: str, ai: ProviderInfo) -> AnswerReply:
            return AnswerReply(video_id=video.id, question=question, answer=text, context=context_meta, ai=ai)

        if is_small_talk(question):
            return answer(build_small_talk_reply(video, context_meta), ProviderInfo(provider=PROVIDER_RULES))

        if is_context_source_question(question):
            return answer(build_context_source_reply(video, context_meta), ProviderInfo(provider=PROVIDER_RULES))

        quota = self.check_quota(user_id)

        video_context = build_video_context_text(video, self._excerpt(transcript, question))
        request = GenerationRequest(
            system_instruction=QUESTION_SYSTEM_INSTRUCTION,
            user_prompt=build_question_prompt(video_context, question),
            temperature=0.3,
            max_output_tokens=400,
        )
        result = self._generate(
            request,
            build_answer_fallback(question, video.title, video.summary or video.description),
        )

        self._record_usage(user_id, JOB_CHAT, {
            "videoId": video.id,
            "provider": result.provider,
            "model": result.model,
            "mode": "ask",
        })
        return answer(
            result.text,
            ProviderInfo(provider=result.provider, model=result.model, warning=result.warning, quota=quota),
        )

    # ── Summaries ─────────────────────────────────────────────────

    def get_video_summary(self, video_id: str, viewer_id: str) -> SummaryReply:
        video = self.store.load_video(video_id, viewer_id)
        context_meta = self._context_meta(video, self._transcript_for(video))
        return SummaryReply(
            video_id=video.id,
            summary=video.summary or None,
            source="existing" if video.summary else "none",
            context=context_meta,
        )

    def generate_video_summary(self, video_id: str, user_id: str, force: bool = False) -> SummaryReply:
        video = self.store.load_video(video_id, user_id)
        transcript = self._transcript_for(video)
        context_meta = self._context_meta(video, transcript)

        if video.summary and not force:
            logger.debug("Returning existing summary for video %s", video_id)
            return SummaryReply(video_id=video.id, summary=video.summary, source="existing", context=context_meta)

        quota = self.check_quota(user_id)

        video_context = build_video_context_text(
            video,
            self._excerpt(transcript, SUMMARY_QUESTION),
            include_summary=False,
        )
        request = GenerationRequest(
            system_instruction=SUMMARY_SYSTEM_INSTRUCTION,
            user_prompt=build_summary_prompt(video_context),
            temperature=0.2,
            max_output_tokens=450,
        )
        result = self._generate(request, build_summary_fallback(video.title, video.description))
        self.store.update_summary(video.id, result.text)

        self._record_usage(user_id, JOB_SUMMARY, {
            "videoId": video.id,
            "provider": result.provider,
            "model": result.model,
        })
        return SummaryReply(
            video_id=video.id,
            summary=result.text,
            source=result.provider,
            context=context_meta,
            ai=ProviderInfo(provider=result.provider, model=result.model, warning=result.warning, quota=quota),
        )

    # ── Transcripts ───────────────────────────────────────────────

    def _owned_video(self, video_id: str, user_id: str, action: str) -> VideoRecord:
        video_id = (video_id or "").strip()
        if not video_id:
            raise ValidationError("videoId is required")
        video = self.store.get_video(video_id)
        if video is None:
            raise NotFoundError("Video not found")
        if video.owner_id != user_id:
            raise ForbiddenError(f"Only the video owner can {action} transcript")
        return video

    def ingest_video_transcript(
        self,
        video_id: str,
        user_id: str,
        transcript: str | None = None,
        cues: Sequence[object] | None = None,
        language: str | None = None,
        source: str | None = None,
    ) -> NormalizedTranscript:
        """Normalize and store a transcript, replacing any previous one."""
        if len((transcript or "").strip()) > MAX_TRANSCRIPT_TEXT_CHARS and not cues:
            raise ValidationError(f"transcript is too long (max {MAX_TRANSCRIPT_TEXT_CHARS} chars)")

        video = self._owned_video(video_id, user_id, "update")
        normalized = ingest_transcript(transcript, cues, video.duration)
        self.store.save_transcript(
            video.id,
            normalized,
            language=trim_to(language, 16) or None,
            source=normalize_transcript_source(source),
        )
        return normalized

    def delete_video_transcript(self, video_id: str, user_id: str) -> bool:
        video = self._owned_video(video_id, user_id, "delete")
        return self.store.delete_transcript(video.id)

    def get_transcript(
        self,
        video_id: str,
        viewer_id: str,
        query: str = "",
        from_ms: int | None = None,
        to_ms: int | None = None,
        page: int | None = None,
        limit: int | None = None,
    ) -> TranscriptPage:
        """Filtered transcript segments, one page at a time, plus the full text."""
        video = self.store.load_video(video_id, viewer_id)
        transcript = self._transcript_for(video)
        matches = filter_segments(transcript.segments, query, from_ms, to_ms)
        page, limit = sanitize_pagination(page, limit, MAX_SEGMENTS_PAGE)
        offset = (page - 1) * limit
        return TranscriptPage(
            video_id=video.id,
            title=video.title,
            transcript_text=transcript.transcript_text,
            has_transcript=bool(transcript.transcript_text),
            language=video.transcript_language,
            source=video.transcript_source,
            word_count=transcript.word_count,
            segment_count=transcript.segment_count,
            segments=matches[offset:offset + limit],
            query=" ".join((query or "").split()) or None,
            from_ms=from_ms,
            to_ms=to_ms,
            pagination=build_pagination(page, limit, len(matches)),
        )
