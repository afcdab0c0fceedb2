"""
Response pipeline for the consultant.
Coordinates knowledge lookup -> LLM -> TTS for one user message.
"""

import time
import traceback
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List, Sequence
import logging

from xelochat.config import get_settings, BROWSER_TTS_HINT
from xelochat.core.conversation import ResponsePayload
from xelochat.core.exceptions import XeloChatException, PipelineStageException
from xelochat.core.session import ChatSession, ConversationTurn
from xelochat.knowledge import (
    CONSULTANT_PROFILE,
    ConsultantProfile,
    KnowledgeBase,
    build_messages,
    build_system_prompt
)
from xelochat.logging import ConversationLogger
from xelochat.services.llm import LLMService, get_model
from xelochat.services.stt import STTService
from xelochat.services.tts import TTSService

logger = logging.getLogger(__name__)
settings = get_settings()


@dataclass
class PipelineMetrics:
    """Metrics for a single reply."""
    start_time: float = field(default_factory=time.time)
    retrieval_start: Optional[float] = None
    retrieval_end: Optional[float] = None
    llm_start: Optional[float] = None
    llm_end: Optional[float] = None
    tts_start: Optional[float] = None
    tts_end: Optional[float] = None
    end_time: Optional[float] = None

    @property
    def retrieval_latency_ms(self) -> Optional[float]:
        if self.retrieval_start and self.retrieval_end:
            return (self.retrieval_end - self.retrieval_start) * 1000
        return None

    @property
    def llm_latency_ms(self) -> Optional[float]:
        if self.llm_start and self.llm_end:
            return (self.llm_end - self.llm_start) * 1000
        return None

    @property
    def tts_latency_ms(self) -> Optional[float]:
        if self.tts_start and self.tts_end:
            return (self.tts_end - self.tts_start) * 1000
        return None

    @property
    def total_latency_ms(self) -> float:
        end = self.end_time or time.time()
        return (end - self.start_time) * 1000

    def to_dict(self) -> Dict[str, Any]:
        return {
            "retrieval_latency_ms": self.retrieval_latency_ms,
            "llm_latency_ms": self.llm_latency_ms,
            "tts_latency_ms": self.tts_latency_ms,
            "total_latency_ms": self.total_latency_ms
        }


@dataclass
class ChatReply:
    """Consultant reply to one message."""
    message: str
    model_id: str
    audio_url: Optional[str] = None
    knowledge_ids: List[str] = field(default_factory=list)
    metrics: PipelineMetrics = field(default_factory=PipelineMetrics)

    @property
    def tts_hint(self) -> Optional[str]:
        return None if self.audio_url else BROWSER_TTS_HINT

    def to_payload(self) -> ResponsePayload:
        return ResponsePayload(
            message=self.message,
            audio_url=self.audio_url,
            tts_hint=self.tts_hint
        )


class ChatPipeline:
    """
    Produces consultant replies.

    Retrieval picks the top knowledge entries for the message, the LLM
    answers in persona with those entries in its system prompt, and TTS
    renders the answer to an audio file when it can.
    """

    def __init__(
        self,
        knowledge_base: KnowledgeBase,
        llm_service: LLMService,
        tts_service: TTSService,
        stt_service: STTService,
        conversation_logger: Optional[ConversationLogger] = None,
        profile: ConsultantProfile = CONSULTANT_PROFILE
    ):
        self.knowledge = knowledge_base
        self.llm = llm_service
        self.tts = tts_service
        self.stt = stt_service
        self.conversation_log = conversation_logger
        self.profile = profile

    async def respond(
        self,
        message: str,
        history: Sequence[Dict[str, str]] = (),
        model_id: Optional[str] = None,
        session_id: str = "anonymous"
    ) -> ChatReply:
        """
        Answer one user message.

        Raises ModelNotFoundException before any work for unknown models,
        and LLM exceptions when the provider fails. TTS failure is not an
        error; the reply simply carries no audio.
        """
        model = get_model(model_id or settings.DEFAULT_MODEL_ID)
        metrics = PipelineMetrics()

        # ==================
        # Stage 1: Retrieval
        # ==================
        metrics.retrieval_start = time.time()
        relevant = self.knowledge.search(message, settings.KNOWLEDGE_SEARCH_LIMIT)
        metrics.retrieval_end = time.time()

        if self.conversation_log:
            await self.conversation_log.log_knowledge_hits(
                session_id,
                [{"id": entry.id, "title": entry.title} for entry in relevant]
            )

        # ==================
        # Stage 2: LLM
        # ==================
        system_prompt = build_system_prompt(self.profile, relevant)
        messages = build_messages(
            system_prompt,
            history,
            message,
            settings.CONTEXT_WINDOW_SIZE
        )

        metrics.llm_start = time.time()
        try:
            response = await self.llm.complete(messages, model_id=model.id)
        except XeloChatException as e:
            await self._log_failure(session_id, e)
            raise
        except Exception as e:
            logger.exception(f"LLM stage failed: {e}")
            await self._log_failure(session_id, e)
            raise PipelineStageException("llm", str(e))
        metrics.llm_end = time.time()

        if self.conversation_log:
            await self.conversation_log.log_llm_response(
                session_id,
                response.content,
                response.model_id,
                tokens_used=(response.usage or {}).get("total_tokens"),
                latency_ms=metrics.llm_latency_ms
            )

        # ==================
        # Stage 3: TTS
        # ==================
        metrics.tts_start = time.time()
        tts_result = await self.tts.synthesize(response.content)
        metrics.tts_end = time.time()
        metrics.end_time = time.time()

        reply = ChatReply(
            message=response.content,
            model_id=response.model_id,
            audio_url=tts_result.audio_url if tts_result else None,
            knowledge_ids=[entry.id for entry in relevant],
            metrics=metrics
        )

        logger.info(
            f"Reply for {session_id} via {reply.model_id} in {metrics.total_latency_ms:.0f}ms "
            f"(knowledge={reply.knowledge_ids}, audio={'yes' if reply.audio_url else 'browser'})"
        )

        if self.conversation_log:
            await self.conversation_log.log_turn_complete(session_id, metrics.to_dict())

        return reply

    async def chat(
        self,
        session: ChatSession,
        message: str,
        model_id: Optional[str] = None,
        history: Optional[Sequence[Dict[str, str]]] = None
    ) -> ChatReply:
        """
        Answer a message within a session and record both turns.

        `history` overrides the session's own history, for clients that
        keep the conversation themselves.
        """
        if history is None:
            history = session.get_llm_messages()

        if self.conversation_log:
            await self.conversation_log.log_user_input(session.session_id, message)

        reply = await self.respond(
            message,
            history,
            model_id or session.model_id,
            session.session_id
        )

        session.model_id = reply.model_id
        session.add_turn(ConversationTurn(role="user", content=message))
        session.add_turn(ConversationTurn(
            role="assistant",
            content=reply.message,
            model_id=reply.model_id,
            knowledge_ids=reply.knowledge_ids,
            processing_time_ms=int(reply.metrics.total_latency_ms)
        ))

        return reply

    async def transcribe(
        self,
        audio_data: bytes,
        filename: str = "recording.webm",
        session_id: str = "anonymous"
    ) -> str:
        """Transcribe a push-to-talk recording to text."""
        result = await self.stt.transcribe(audio_data, filename=filename)

        if self.conversation_log:
            await self.conversation_log.log_user_input(
                session_id,
                result.text,
                source="transcription",
                latency_ms=result.processing_time_ms
            )

        return result.text

    async def _log_failure(self, session_id: str, error: Exception):
        if self.conversation_log:
            await self.conversation_log.log_error(
                session_id,
                type(error).__name__,
                str(error),
                traceback.format_exc()
            )


class SessionDispatcher:
    """Answers a voice conversation's utterances within one chat session."""

    def __init__(self, pipeline: ChatPipeline, session: ChatSession, model_id: Optional[str] = None):
        self.pipeline = pipeline
        self.session = session
        self.model_id = model_id
        self.last_reply: Optional[ChatReply] = None

    async def respond(self, utterance: str) -> ResponsePayload:
        reply = await self.pipeline.chat(self.session, utterance, self.model_id)
        self.last_reply = reply
        return reply.to_payload()


class SessionTranscriber:
    """Transcribes push-to-talk audio on behalf of one session."""

    def __init__(self, pipeline: ChatPipeline, session: ChatSession):
        self.pipeline = pipeline
        self.session = session

    async def transcribe(self, audio_data: bytes) -> str:
        return await self.pipeline.transcribe(audio_data, session_id=self.session.session_id)
