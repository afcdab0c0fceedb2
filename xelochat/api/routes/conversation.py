"""
Conversation REST Endpoints.
Consultant profile, model catalog, knowledge search, chat and transcription.
"""

import logging
from typing import List, Literal, Optional

from fastapi import APIRouter, Query, Request
from pydantic import BaseModel, Field

from xelochat.config import get_settings
from xelochat.core.exceptions import SessionNotFoundException
from xelochat.core.session import ChatSession

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter()


# Extension the transcription provider should assume per upload type
AUDIO_EXTENSIONS = {
    "audio/webm": "webm",
    "audio/ogg": "ogg",
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
    "audio/mp4": "m4a",
}


class HistoryMessage(BaseModel):
    """One prior turn supplied by the client."""
    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    """Request model for sending a message."""
    message: str = Field(..., min_length=1)
    conversation_history: Optional[List[HistoryMessage]] = None
    model_id: Optional[str] = None
    session_id: Optional[str] = None


class ChatResponse(BaseModel):
    """Response model for a consultant reply."""
    message: str
    audio_url: Optional[str] = None
    tts_hint: Optional[str] = None
    session_id: str
    model_id: str
    knowledge_ids: List[str] = []
    latency_ms: float


class TranscribeResponse(BaseModel):
    text: str


async def resolve_session(request: Request, session_id: Optional[str], channel: str) -> ChatSession:
    """Return the named live session, or start a new one (keeping the id if given)."""
    manager = request.app.state.session_manager

    session = await manager.get_session(session_id) if session_id else None
    if session is None:
        session = await manager.create_session(session_id)
        await request.app.state.conversation_logger.log_session_start(
            session.session_id,
            session.model_id,
            channel
        )

    return session


@router.get("/consultant/profile")
async def get_consultant_profile(request: Request):
    """The consultant persona answering questions."""
    return request.app.state.pipeline.profile.to_dict()


@router.get("/models")
async def list_models(request: Request):
    """Selectable chat models with their availability."""
    return {
        "models": request.app.state.llm_service.list_models(),
        "default_model_id": settings.DEFAULT_MODEL_ID
    }


@router.get("/knowledge/search")
async def search_knowledge(
    request: Request,
    q: str = "",
    limit: int = Query(default=3, ge=0, le=50)
):
    """
    Rank knowledge entries against a free-text query.
    Entries that match nothing are left out; ties keep corpus order.
    """
    results = request.app.state.knowledge_base.search(q, limit)
    return {
        "query": q,
        "results": [entry.to_dict() for entry in results]
    }


@router.post("/chat", response_model=ChatResponse)
async def chat(request: Request, body: ChatRequest):
    """
    Send a text message and get the consultant's reply.

    Audio is returned as a URL when server-side speech synthesis worked;
    otherwise `tts_hint` tells the client to speak the reply itself.
    """
    session = await resolve_session(request, body.session_id, "http")

    history = None
    if body.conversation_history is not None:
        history = [turn.model_dump() for turn in body.conversation_history]

    reply = await request.app.state.pipeline.chat(
        session,
        body.message.strip(),
        model_id=body.model_id,
        history=history
    )
    await request.app.state.session_manager.touch(session)

    return ChatResponse(
        message=reply.message,
        audio_url=reply.audio_url,
        tts_hint=reply.tts_hint,
        session_id=session.session_id,
        model_id=reply.model_id,
        knowledge_ids=reply.knowledge_ids,
        latency_ms=round(reply.metrics.total_latency_ms, 2)
    )


@router.post("/transcribe", response_model=TranscribeResponse)
async def transcribe(request: Request):
    """
    Transcribe a recording sent as the raw request body.
    Used by clients without continuous speech recognition.
    """
    audio_data = await request.body()
    content_type = request.headers.get("content-type", "audio/webm").split(";")[0].strip()
    extension = AUDIO_EXTENSIONS.get(content_type, "webm")

    text = await request.app.state.pipeline.transcribe(
        audio_data,
        filename=f"recording.{extension}"
    )
    return TranscribeResponse(text=text)


@router.get("/sessions/{session_id}")
async def get_session(request: Request, session_id: str):
    """Get a session with its conversation history."""
    session = await request.app.state.session_manager.get_session(session_id)
    if session is None:
        raise SessionNotFoundException(session_id)
    return session.to_dict()


@router.delete("/sessions/{session_id}")
async def delete_session(request: Request, session_id: str):
    """End a session and drop its history."""
    deleted = await request.app.state.session_manager.delete_session(session_id)
    if not deleted:
        raise SessionNotFoundException(session_id)
    return {"session_id": session_id, "deleted": True}
