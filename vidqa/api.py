"""vidqa HTTP API — thin FastAPI adapter over ConversationPipeline.

Usage:
    uvicorn vidqa.api:app --port 8080

The caller is identified by the X-User-Id header; authentication happens
upstream.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.responses import JSONResponse
from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .errors import VidqaError
from .retrieval import resolve_time_bound
from .service import ConversationPipeline
from .store import ChatStore

app = FastAPI(title="vidqa", version="0.1.0")


class _Body(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TranscriptRequest(_Body):
    transcript: Optional[str] = None
    cues: Optional[list[dict[str, Any]]] = Field(
        default=None,
        validation_alias=AliasChoices("cues", "segments", "transcriptCues"),
    )
    language: Optional[str] = None
    source: Optional[str] = None


class QuestionRequest(_Body):
    question: str = ""


class MessageRequest(_Body):
    message: str = ""


class SessionRequest(_Body):
    video_id: Optional[str] = None
    title: Optional[str] = None


class SummaryRequest(_Body):
    force: bool = False


class RenameRequest(_Body):
    title: str = ""


def get_pipeline() -> ConversationPipeline:
    return ConversationPipeline(ChatStore())


@app.exception_handler(VidqaError)
def _vidqa_error(request: Request, exc: VidqaError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def _dump(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True)


@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/videos/{video_id}/transcript")
def put_transcript(
    video_id: str,
    req: TranscriptRequest,
    x_user_id: str = Header(...),
    pipeline: ConversationPipeline = Depends(get_pipeline),
):
    parsed = pipeline.ingest_video_transcript(
        video_id, x_user_id,
        transcript=req.transcript, cues=req.cues,
        language=req.language, source=req.source,
    )
    return _dump(parsed)


@app.get("/videos/{video_id}/transcript")
def get_transcript(
    video_id: str,
    q: str = "",
    from_: Optional[str] = Query(None, alias="from"),
    to: Optional[str] = Query(None, alias="to"),
    from_seconds: Optional[float] = Query(None, alias="fromSeconds"),
    to_seconds: Optional[float] = Query(None, alias="toSeconds"),
    page: Optional[int] = None,
    limit: Optional[int] = None,
    x_user_id: str = Header(...),
    pipeline: ConversationPipeline = Depends(get_pipeline),
):
    result = pipeline.get_transcript(
        video_id, x_user_id, query=q,
        from_ms=resolve_time_bound(from_, from_seconds),
        to_ms=resolve_time_bound(to, to_seconds),
        page=page, limit=limit,
    )
    return _dump(result)


@app.delete("/videos/{video_id}/transcript")
def delete_transcript(
    video_id: str,
    x_user_id: str = Header(...),
    pipeline: ConversationPipeline = Depends(get_pipeline),
):
    deleted = pipeline.delete_video_transcript(video_id, x_user_id)
    return {"videoId": video_id, "deleted": deleted}


@app.post("/videos/{video_id}/ask")
def ask(
    video_id: str,
    req: QuestionRequest,
    x_user_id: str = Header(...),
    pipeline: ConversationPipeline = Depends(get_pipeline),
):
    return _dump(pipeline.handle_one_shot_question(video_id, x_user_id, req.question))


@app.get("/videos/{video_id}/summary")
def read_summary(
    video_id: str,
    x_user_id: str = Header(...),
    pipeline: ConversationPipeline = Depends(get_pipeline),
):
    return _dump(pipeline.get_video_summary(video_id, x_user_id))


@app.post("/videos/{video_id}/summary")
def create_summary(
    video_id: str,
    req: Optional[SummaryRequest] = None,
    x_user_id: str = Header(...),
    pipeline: ConversationPipeline = Depends(get_pipeline),
):
    return _dump(pipeline.generate_video_summary(video_id, x_user_id, force=bool(req and req.force)))


@app.post("/sessions", status_code=201)
def create_session(
    req: SessionRequest,
    x_user_id: str = Header(...),
    pipeline: ConversationPipeline = Depends(get_pipeline),
):
    return _dump(pipeline.create_session(x_user_id, req.video_id, req.title))


@app.post("/sessions/{session_id}/messages")
def send_message(
    session_id: str,
    req: MessageRequest,
    x_user_id: str = Header(...),
    pipeline: ConversationPipeline = Depends(get_pipeline),
):
    return _dump(pipeline.handle_chat_message(session_id, x_user_id, req.message))


@app.get("/sessions")
def list_sessions(
    page: Optional[int] = None,
    limit: Optional[int] = None,
    x_user_id: str = Header(...),
    pipeline: ConversationPipeline = Depends(get_pipeline),
):
    return _dump(pipeline.list_sessions(x_user_id, page, limit))


@app.delete("/sessions")
def clear_sessions(
    video_id: Optional[str] = Query(None, alias="videoId"),
    x_user_id: str = Header(...),
    pipeline: ConversationPipeline = Depends(get_pipeline),
):
    deleted = pipeline.clear_sessions(x_user_id, video_id)
    return {"deletedSessions": deleted, "filter": {"videoId": video_id or None}}


@app.patch("/sessions/{session_id}")
def rename_session(
    session_id: str,
    req: RenameRequest,
    x_user_id: str = Header(...),
    pipeline: ConversationPipeline = Depends(get_pipeline),
):
    return _dump(pipeline.rename_session(session_id, x_user_id, req.title))


@app.delete("/sessions/{session_id}")
def delete_session(
    session_id: str,
    x_user_id: str = Header(...),
    pipeline: ConversationPipeline = Depends(get_pipeline),
):
    deleted = pipeline.delete_session(session_id, x_user_id)
    return {"sessionId": session_id, "deleted": deleted}


@app.get("/sessions/{session_id}/messages")
def list_messages(
    session_id: str,
    page: Optional[int] = None,
    limit: Optional[int] = None,
    x_user_id: str = Header(...),
    pipeline: ConversationPipeline = Depends(get_pipeline),
):
    return _dump(pipeline.get_session_messages(session_id, x_user_id, page, limit))


@app.delete("/sessions/{session_id}/messages")
def clear_messages(
    session_id: str,
    keep_system: bool = Query(True, alias="keepSystem"),
    x_user_id: str = Header(...),
    pipeline: ConversationPipeline = Depends(get_pipeline),
):
    deleted = pipeline.clear_session_messages(session_id, x_user_id, keep_system=keep_system)
    return {"sessionId": session_id, "deletedMessages": deleted, "keepSystem": keep_system}


@app.delete("/sessions/{session_id}/messages/{message_id}")
def delete_message(
    session_id: str,
    message_id: int,
    cascade: bool = True,
    x_user_id: str = Header(...),
    pipeline: ConversationPipeline = Depends(get_pipeline),
):
    deleted_ids = pipeline.delete_session_message(session_id, x_user_id, message_id, cascade=cascade)
    return {
        "sessionId": session_id,
        "deletedIds": deleted_ids,
        "deletedCount": len(deleted_ids),
        "cascadeApplied": len(deleted_ids) > 1,
    }
