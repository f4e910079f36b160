"""Prompt assembly and rule-based replies.

Everything here is plain string building; no model calls.
"""

from __future__ import annotations

from collections.abc import Sequence

from .context import (
    MAX_DESCRIPTION_CHARS,
    MAX_SUMMARY_CHARS,
    sanitize_context_text,
    trim_to,
)
from .schemas import ChatRole, ChatTurn, ContextMeta, VideoRecord

MAX_HISTORY_TURN_CHARS = 1200

CHAT_SYSTEM_INSTRUCTION = (
    "You are a video assistant. Be natural and concise. For greetings, reply friendly. "
    "For video questions, use the available context. If the transcript or context is weak, "
    "give a best-effort answer and clearly mark uncertainty instead of refusing abruptly. "
    "Do not use generic boilerplate like 'As an AI, I do not watch videos like a human'."
)

GENERAL_SYSTEM_INSTRUCTION = (
    "You are a video platform assistant. Help with uploads, playback, account settings "
    "and creator workflows. Keep answers short and practical."
)

QUESTION_SYSTEM_INSTRUCTION = (
    "You are a helpful video Q&A assistant. Keep answers clear, practical and beginner-friendly. "
    "Stay grounded in the provided context and mark uncertainty briefly when context is weak. "
    "Do not say 'As an AI I cannot watch videos'; say answers are based on the available "
    "transcript and metadata."
)

SUMMARY_SYSTEM_INSTRUCTION = (
    "You are a precise video summarizer. Output compact bullet points with factual language."
)

NO_VIDEO_CONTEXT = "No specific video context. Assist the user with platform guidance and concise answers."


def build_video_context_text(
    video: VideoRecord,
    transcript_excerpt: str,
    include_summary: bool = True,
    max_transcript_chars: int = 5000,
) -> str:
    """Title, usable description/summary and the transcript excerpt, one per line."""
    safe_description = sanitize_context_text(video.description, MAX_DESCRIPTION_CHARS)
    safe_summary = sanitize_context_text(video.summary, MAX_SUMMARY_CHARS)
    safe_transcript = trim_to(transcript_excerpt, max_transcript_chars)

    parts = [
        f"Title: {trim_to(video.title, 200)}",
        f"Description: {safe_description or 'Not available or too repetitive for reliable AI context.'}",
    ]
    if include_summary and safe_summary:
        parts.append(f"Existing summary: {safe_summary}")

    if safe_transcript:
        parts.append(f"Transcript excerpt: {safe_transcript}")
    else:
        parts.append(
            "Transcript excerpt: Not available. Prefer a best-effort answer from "
            "title/description and clearly mark uncertainty."
        )
    return "\n".join(parts)


def _history_block(history: Sequence[ChatTurn]) -> str:
    lines = []
    for turn in history:
        if turn.role == ChatRole.SYSTEM:
            continue
        speaker = "User" if turn.role == ChatRole.USER else "Assistant"
        lines.append(f"{speaker}: {trim_to(turn.content, MAX_HISTORY_TURN_CHARS)}")
    return "\n".join(lines)


def build_chat_prompt(
    video_context_text: str,
    latest_message: str,
    history: Sequence[ChatTurn],
    context_meta: ContextMeta,
) -> str:
    return "\n".join([
        "Context about the video:",
        video_context_text,
        "",
        "Context health:",
        f"- transcriptAvailable: {'yes' if context_meta.has_transcript else 'no'}",
        f"- contextQuality: {context_meta.quality.value}",
        "",
        "Conversation history:",
        _history_block(history) or "No previous messages.",
        "",
        f"Latest user question: {latest_message}",
        "",
        "Answer clearly and naturally.",
        "If the user sends a greeting or small talk, respond briefly and friendly.",
        "If the user asks about the context source, explain briefly that answers come from "
        "the transcript and metadata available in this session.",
        "For video questions, use the provided context; when it is missing, give a best-effort "
        "answer and clearly mark uncertainty.",
    ])


def build_question_prompt(video_context_text: str, question: str) -> str:
    return "\n".join([
        "Answer the user question using the provided video context.",
        "If the transcript is missing, give a best-effort explanation from title/description/summary "
        "and clearly label uncertainty.",
        "Do not return an empty refusal when helpful partial guidance is possible.",
        "",
        video_context_text,
        "",
        f"Question: {question}",
    ])


def build_summary_prompt(video_context_text: str) -> str:
    return "\n".join([
        "Create a concise summary for this video.",
        "Use 5 to 8 bullet points.",
        "Include key takeaways and practical context.",
        "Use the available context first; if the transcript is missing, still provide a useful "
        "best-effort summary from title/description and label uncertainty briefly.",
        "",
        video_context_text,
    ])


def build_small_talk_reply(video: VideoRecord | None, context_meta: ContextMeta) -> str:
    if video is None:
        return "Hi! I can help with uploads, playback, channel growth and settings."

    title = trim_to(video.title, 80)
    if context_meta.has_transcript or context_meta.has_summary or context_meta.has_description:
        return f'Hi! Ask me about "{title}" and I will explain key points, the summary and beginner-friendly takeaways.'
    return (
        "Hi! I can help, but this video has limited AI context right now. Add a richer "
        f'description or transcript for better answers about "{title}".'
    )


def build_context_source_reply(video: VideoRecord | None, context_meta: ContextMeta) -> str:
    if video is None:
        return "I answer using the context provided in this chat and platform data, not by watching raw video frames."

    source = (
        "transcript + metadata (title/description/summary)"
        if context_meta.has_transcript
        else "metadata (title/description/summary)"
    )
    return (
        f'I answer based on {source} for "{trim_to(video.title, 80)}". '
        "I do not directly watch raw video frames like a human viewer."
    )


def build_general_fallback(message: str) -> str:
    return f'I can help with using the platform. Your question was: "{trim_to(message, 240)}".'


def default_session_title(video_title: str | None = None) -> str:
    safe_title = trim_to(video_title, 80)
    if safe_title:
        return f"Chat about: {safe_title}"
    return "General assistant chat"
