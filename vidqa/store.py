"""vidqa store — SQLite-backed reference implementation of the store collaborator.

Tables:
  videos       video metadata the assistant reads (owned by the upload pipeline)
  transcripts  one normalized transcript per video, replaced wholesale
  sessions     chat sessions, one optional video each
  turns        chat turns, ordered by insertion
  usage_log    one row per AI request, counted for the daily quota

A connection is opened per operation; nothing is cached in-process, so any
number of handlers can share one database file.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from . import config
from .errors import ForbiddenError, NotFoundError, NotReadyError
from .schemas import ChatRole, ChatSession, ChatTurn, NormalizedTranscript, SessionListing, VideoRecord

logger = logging.getLogger(__name__)

COMPLETED = "COMPLETED"


def _default_db_path() -> Path:
    configured = config.get("VIDQA_DB_PATH")
    if configured:
        return Path(configured)
    return Path.cwd() / ".vidqa" / "vidqa.sqlite3"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _as_utc(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat()


class ChatStore:
    def __init__(self, db_path: str | Path | None = None) -> None:
        self.db_path = Path(db_path) if db_path else _default_db_path()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        try:
            with conn:  # commit on success, rollback on error
                yield conn
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS videos (
                    id TEXT PRIMARY KEY,
                    owner_id TEXT NOT NULL,
                    title TEXT NOT NULL DEFAULT '',
                    description TEXT NOT NULL DEFAULT '',
                    summary TEXT NOT NULL DEFAULT '',
                    duration REAL,
                    is_published INTEGER NOT NULL DEFAULT 1,
                    is_deleted INTEGER NOT NULL DEFAULT 0,
                    processing_status TEXT NOT NULL DEFAULT 'COMPLETED',
                    updated_at TEXT NOT NULL
                );
                CREATE TABLE IF NOT EXISTS transcripts (
                    video_id TEXT PRIMARY KEY,
                    transcript TEXT NOT NULL,
                    segments TEXT NOT NULL,
                    language TEXT,
                    source TEXT,
                    word_count INTEGER NOT NULL DEFAULT 0,
                    generated_at TEXT NOT NULL
                );
                CREATE TABLE IF NOT EXISTS sessions (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    video_id TEXT,
                    title TEXT NOT NULL DEFAULT '',
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );
                CREATE TABLE IF NOT EXISTS turns (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    session_id TEXT NOT NULL,
                    role TEXT NOT NULL,
                    content TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );
                CREATE INDEX IF NOT EXISTS turns_session ON turns (session_id, id);
                CREATE TABLE IF NOT EXISTS usage_log (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    job_kind TEXT NOT NULL,
                    payload TEXT,
                    created_at TEXT NOT NULL
                );
                CREATE INDEX IF NOT EXISTS usage_user_time ON usage_log (user_id, created_at);
                """
            )

    # ── Videos ────────────────────────────────────────────────────

    def save_video(
        self,
        video_id: str,
        owner_id: str,
        title: str = "",
        description: str = "",
        summary: str = "",
        duration: float | None = None,
        is_published: bool = True,
        processing_status: str = COMPLETED,
    ) -> None:
        """Insert or replace video metadata (normally written by the upload pipeline)."""
        with self._connect() as conn:
            conn.execute(
                """INSERT OR REPLACE INTO videos
                   (id, owner_id, title, description, summary, duration,
                    is_published, is_deleted, processing_status, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, 0, ?, ?)""",
                (video_id, owner_id, title, description, summary, duration,
                 int(is_published), processing_status, _now()),
            )

    def get_video(self, video_id: str) -> VideoRecord | None:
        """Video with its stored transcript, or None if missing or deleted. No access checks."""
        with self._connect() as conn:
            row = conn.execute(
                """SELECT v.*, t.transcript, t.segments, t.language, t.source
                   FROM videos v LEFT JOIN transcripts t ON t.video_id = v.id
                   WHERE v.id = ?""",
                (video_id,),
            ).fetchone()
        if row is None or row["is_deleted"]:
            return None
        return VideoRecord(
            id=row["id"],
            owner_id=row["owner_id"],
            title=row["title"],
            description=row["description"],
            summary=row["summary"],
            duration=row["duration"],
            is_published=bool(row["is_published"]),
            processing_status=row["processing_status"],
            transcript_text=row["transcript"] or "",
            transcript_segments=json.loads(row["segments"]) if row["segments"] else [],
            transcript_language=row["language"],
            transcript_source=row["source"],
        )

    def load_video(self, video_id: str, viewer_id: str | None) -> VideoRecord:
        """Video as the assistant may see it for this viewer.

        Raises NotFoundError, NotReadyError or ForbiddenError.
        """
        video = self.get_video(video_id)
        if video is None:
            raise NotFoundError("Video not found")

        if video.processing_status != COMPLETED:
            raise NotReadyError("Video processing not completed")

        if not video.is_published and viewer_id != video.owner_id:
            raise ForbiddenError("Video is not publicly available")
        return video

    def update_summary(self, video_id: str, summary: str) -> None:
        with self._connect() as conn:
            conn.execute(
                "UPDATE videos SET summary = ?, updated_at = ? WHERE id = ?",
                (summary, _now(), video_id),
            )
        logger.info("Saved summary for video %s (%d chars)", video_id, len(summary))

    # ── Transcripts ───────────────────────────────────────────────

    def save_transcript(
        self,
        video_id: str,
        transcript: NormalizedTranscript,
        language: str | None = None,
        source: str | None = None,
    ) -> None:
        """Replace the video's transcript with a freshly normalized one."""
        segments = [segment.model_dump(by_alias=True) for segment in transcript.segments]
        with self._connect() as conn:
            conn.execute(
                """INSERT OR REPLACE INTO transcripts
                   (video_id, transcript, segments, language, source, word_count, generated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (video_id, transcript.transcript_text, json.dumps(segments, ensure_ascii=False),
                 language, source, transcript.word_count, _now()),
            )
        logger.info("Saved transcript for video %s (%d segments)", video_id, transcript.segment_count)

    def delete_transcript(self, video_id: str) -> bool:
        with self._connect() as conn:
            deleted = conn.execute("DELETE FROM transcripts WHERE video_id = ?", (video_id,)).rowcount
        return deleted > 0

    # ── Sessions and turns ────────────────────────────────────────

    @staticmethod
    def _session(row: sqlite3.Row) -> ChatSession:
        return ChatSession(
            id=row["id"],
            user_id=row["user_id"],
            video_id=row["video_id"],
            title=row["title"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _turn(row: sqlite3.Row) -> ChatTurn:
        return ChatTurn(
            id=row["id"],
            session_id=row["session_id"],
            role=ChatRole(row["role"]),
            content=row["content"],
            created_at=row["created_at"],
        )

    def create_session(
        self,
        user_id: str,
        video_id: str | None,
        title: str,
        system_message: str = "",
    ) -> ChatSession:
        session_id = uuid.uuid4().hex
        now = _now()
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO sessions (id, user_id, video_id, title, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (session_id, user_id, video_id, title, now, now),
            )
            if system_message:
                conn.execute(
                    "INSERT INTO turns (session_id, role, content, created_at) VALUES (?, ?, ?, ?)",
                    (session_id, ChatRole.SYSTEM.value, system_message, now),
                )
            row = conn.execute("SELECT * FROM sessions WHERE id = ?", (session_id,)).fetchone()
        return self._session(row)

    def get_session(self, session_id: str) -> ChatSession | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM sessions WHERE id = ?", (session_id,)).fetchone()
        return self._session(row) if row else None

    def fetch_recent_turns(self, session_id: str, limit: int) -> list[ChatTurn]:
        """The latest `limit` turns of a session, oldest first."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM turns WHERE session_id = ? ORDER BY id DESC LIMIT ?",
                (session_id, limit),
            ).fetchall()
        return [self._turn(row) for row in reversed(rows)]

    def append_turn_pair(
        self,
        session_id: str,
        user_content: str,
        assistant_content: str,
    ) -> tuple[ChatTurn, ChatTurn]:
        """Append one USER and one ASSISTANT turn in a single transaction."""
        now = _now()
        with self._connect() as conn:
            ids = []
            for role, content in ((ChatRole.USER, user_content), (ChatRole.ASSISTANT, assistant_content)):
                cursor = conn.execute(
                    "INSERT INTO turns (session_id, role, content, created_at) VALUES (?, ?, ?, ?)",
                    (session_id, role.value, content, now),
                )
                ids.append(cursor.lastrowid)
            conn.execute("UPDATE sessions SET updated_at = ? WHERE id = ?", (now, session_id))
            rows = conn.execute(
                "SELECT * FROM turns WHERE id IN (?, ?) ORDER BY id", ids
            ).fetchall()
        user_turn, assistant_turn = (self._turn(row) for row in rows)
        return user_turn, assistant_turn

    def list_sessions(self, user_id: str, limit: int, offset: int = 0) -> tuple[list[SessionListing], int]:
        """A page of the user's sessions, most recently active first, and the total count."""
        with self._connect() as conn:
            total = conn.execute("SELECT COUNT(*) FROM sessions WHERE user_id = ?", (user_id,)).fetchone()[0]
            rows = conn.execute(
                """SELECT s.*, (SELECT COUNT(*) FROM turns t WHERE t.session_id = s.id) AS message_count
                   FROM sessions s WHERE s.user_id = ?
                   ORDER BY s.updated_at DESC, s.rowid DESC LIMIT ? OFFSET ?""",
                (user_id, limit, offset),
            ).fetchall()
            listings = []
            for row in rows:
                last = conn.execute(
                    "SELECT * FROM turns WHERE session_id = ? ORDER BY id DESC LIMIT 1", (row["id"],)
                ).fetchone()
                listings.append(SessionListing(
                    **self._session(row).model_dump(),
                    message_count=row["message_count"],
                    last_message=self._turn(last) if last else None,
                ))
        return listings, int(total)

    def list_turns(self, session_id: str, limit: int, offset: int = 0) -> tuple[list[ChatTurn], int]:
        """A page of a session's turns, oldest first, and the total count."""
        with self._connect() as conn:
            total = conn.execute("SELECT COUNT(*) FROM turns WHERE session_id = ?", (session_id,)).fetchone()[0]
            rows = conn.execute(
                "SELECT * FROM turns WHERE session_id = ? ORDER BY id LIMIT ? OFFSET ?",
                (session_id, limit, offset),
            ).fetchall()
        return [self._turn(row) for row in rows], int(total)

    def rename_session(self, session_id: str, title: str) -> ChatSession | None:
        with self._connect() as conn:
            conn.execute(
                "UPDATE sessions SET title = ?, updated_at = ? WHERE id = ?",
                (title, _now(), session_id),
            )
            row = conn.execute("SELECT * FROM sessions WHERE id = ?", (session_id,)).fetchone()
        return self._session(row) if row else None

    def delete_session(self, session_id: str) -> bool:
        """Delete a session and all of its turns."""
        with self._connect() as conn:
            conn.execute("DELETE FROM turns WHERE session_id = ?", (session_id,))
            deleted = conn.execute("DELETE FROM sessions WHERE id = ?", (session_id,)).rowcount
        return deleted > 0

    def clear_sessions(self, user_id: str, video_id: str | None = None) -> int:
        """Delete every session of a user (optionally only those about one video)."""
        where = "user_id = ?"
        params: list[Any] = [user_id]
        if video_id:
            where += " AND video_id = ?"
            params.append(video_id)
        with self._connect() as conn:
            conn.execute(
                f"DELETE FROM turns WHERE session_id IN (SELECT id FROM sessions WHERE {where})", params
            )
            deleted = conn.execute(f"DELETE FROM sessions WHERE {where}", params).rowcount
        logger.info("Cleared %d session(s) for user %s", deleted, user_id)
        return deleted

    def clear_turns(self, session_id: str, keep_system: bool = True) -> int:
        sql = "DELETE FROM turns WHERE session_id = ?"
        params: list[Any] = [session_id]
        if keep_system:
            sql += " AND role != ?"
            params.append(ChatRole.SYSTEM.value)
        with self._connect() as conn:
            deleted = conn.execute(sql, params).rowcount
            conn.execute("UPDATE sessions SET updated_at = ? WHERE id = ?", (_now(), session_id))
        return deleted

    def get_turn(self, session_id: str, turn_id: int) -> ChatTurn | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM turns WHERE id = ? AND session_id = ?", (turn_id, session_id)
            ).fetchone()
        return self._turn(row) if row else None

    def next_turn(self, session_id: str, turn_id: int) -> ChatTurn | None:
        """The turn stored right after turn_id in the same session."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM turns WHERE session_id = ? AND id > ? ORDER BY id LIMIT 1",
                (session_id, turn_id),
            ).fetchone()
        return self._turn(row) if row else None

    def delete_turns(self, session_id: str, turn_ids: Iterable[int]) -> int:
        ids = list(turn_ids)
        if not ids:
            return 0
        placeholders = ", ".join("?" for _ in ids)
        with self._connect() as conn:
            deleted = conn.execute(
                f"DELETE FROM turns WHERE session_id = ? AND id IN ({placeholders})",
                (session_id, *ids),
            ).rowcount
            conn.execute("UPDATE sessions SET updated_at = ? WHERE id = ?", (_now(), session_id))
        return deleted

    # ── Usage log ─────────────────────────────────────────────────

    def count_usage(self, user_id: str, job_kinds: Iterable[str], since: datetime) -> int:
        kinds = list(job_kinds)
        if not kinds:
            return 0
        placeholders = ", ".join("?" for _ in kinds)
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT COUNT(*) FROM usage_log WHERE user_id = ? "
                f"AND job_kind IN ({placeholders}) AND created_at >= ?",
                (user_id, *kinds, _as_utc(since)),
            ).fetchone()
        return int(row[0])

    def record_usage(self, user_id: str, job_kind: str, payload: dict[str, Any] | None = None) -> None:
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO usage_log (user_id, job_kind, payload, created_at) VALUES (?, ?, ?, ?)",
                (user_id, job_kind, json.dumps(payload or {}), _now()),
            )
