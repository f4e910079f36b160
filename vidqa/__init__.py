"""
vidqa — transcript-grounded chat and Q&A for hosted videos.

Usage:
    from vidqa import ingest_transcript, retrieve_context, assess_context
    from vidqa import ChatStore, ConversationPipeline

    # Normalize any transcript shape (SRT/VTT text, cue arrays, plain prose)
    transcript = ingest_transcript("1\\n00:00:01,000 --> 00:00:03,000\\nHello", duration_seconds=60)

    # Pick the excerpt that answers a question
    excerpt = retrieve_context(transcript.segments, "what is said first?")

    # Full pipeline: cache, small talk, quota, generation with fallback
    pipeline = ConversationPipeline(ChatStore())
    answer = pipeline.handle_one_shot_question("video-1", "user-1", "what is this about?")
"""

from .context import assess_context
from .retrieval import retrieve_context
from .service import ConversationPipeline
from .store import ChatStore
from .transcript import ingest_transcript

__all__ = [
    "ChatStore",
    "ConversationPipeline",
    "assess_context",
    "ingest_transcript",
    "retrieve_context",
]
