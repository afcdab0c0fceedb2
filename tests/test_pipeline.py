"""Tests for the reply pipeline and its voice session adapters."""

from unittest.mock import AsyncMock, patch

import pytest

from xelochat.config import BROWSER_TTS_HINT
from xelochat.core.exceptions import (
    LLMTimeoutException,
    ModelNotFoundException,
    PipelineStageException
)
from xelochat.core.pipeline import (
    ChatPipeline,
    ChatReply,
    SessionDispatcher,
    SessionTranscriber
)
from xelochat.core.session import ChatSession
from xelochat.logging import ConversationLogger
from xelochat.services.stt import MOCK_TRANSCRIPT
from xelochat.services.tts import TTSResult

pytestmark = pytest.mark.asyncio


@pytest.fixture
def conversation_logger(tmp_path):
    return ConversationLogger(tmp_path / "conversation_log.md")


@pytest.fixture
def pipeline(knowledge_base, llm_service, tts_service, stt_service, conversation_logger):
    return ChatPipeline(
        knowledge_base=knowledge_base,
        llm_service=llm_service,
        tts_service=tts_service,
        stt_service=stt_service,
        conversation_logger=conversation_logger
    )


@pytest.fixture
def session():
    return ChatSession(session_id="session-1")


class TestRespond:
    """Tests for ChatPipeline.respond."""

    async def test_reply_carries_knowledge_ids(self, pipeline):
        reply = await pipeline.respond("cloud migration")

        assert reply.knowledge_ids == ["exp-3", "case-1", "exp-1"]
        assert reply.model_id == "mock"
        assert "cloud architecture" in reply.message

    async def test_prompt_contains_retrieved_entries(self, pipeline, llm_service):
        with patch.object(llm_service, "complete", AsyncMock(wraps=llm_service.complete)) as complete:
            await pipeline.respond("cloud migration")

        messages = complete.call_args.args[0]
        assert messages[0]["role"] == "system"
        assert "[Cloud Architecture & Migration]" in messages[0]["content"]
        assert messages[-1] == {"role": "user", "content": "cloud migration"}

    async def test_no_audio_sets_browser_hint(self, pipeline):
        reply = await pipeline.respond("hello")

        assert reply.audio_url is None
        assert reply.tts_hint == BROWSER_TTS_HINT

        payload = reply.to_payload()
        assert payload.tts_hint == BROWSER_TTS_HINT
        assert payload.message == reply.message

    async def test_audio_url_from_tts(self, pipeline, tts_service, tmp_path):
        result = TTSResult(path=tmp_path / "speech-1.mp3", audio_url="/audio/speech-1.mp3", size_bytes=10)

        with patch.object(tts_service, "synthesize", AsyncMock(return_value=result)):
            reply = await pipeline.respond("hello")

        assert reply.audio_url == "/audio/speech-1.mp3"
        assert reply.tts_hint is None

    async def test_unknown_model_rejected_before_work(self, pipeline, llm_service):
        with patch.object(llm_service, "complete", AsyncMock()) as complete:
            with pytest.raises(ModelNotFoundException):
                await pipeline.respond("hello", model_id="gpt-9")

        complete.assert_not_awaited()

    async def test_llm_failure_propagates(self, pipeline, llm_service, conversation_logger):
        with patch.object(llm_service, "complete", AsyncMock(side_effect=LLMTimeoutException(15))):
            with pytest.raises(LLMTimeoutException):
                await pipeline.respond("hello", session_id="session-9")

        log = conversation_logger.log_path.read_text(encoding="utf-8")
        assert "**Type:** `LLMTimeoutException`" in log
        assert "`session-9`" in log

    async def test_unexpected_llm_failure_is_wrapped(self, pipeline, llm_service):
        with patch.object(llm_service, "complete", AsyncMock(side_effect=RuntimeError("socket closed"))):
            with pytest.raises(PipelineStageException) as exc_info:
                await pipeline.respond("hello")

        assert exc_info.value.message == "Pipeline stage 'llm' failed: socket closed"

    async def test_turn_is_logged(self, pipeline, conversation_logger):
        await pipeline.respond("cloud migration", session_id="session-2")

        log = conversation_logger.log_path.read_text(encoding="utf-8")
        assert "| `exp-3` | Cloud Architecture & Migration |" in log
        assert "Consultant Response" in log
        assert "Turn Complete" in log

    async def test_metrics(self, pipeline):
        reply = await pipeline.respond("hello")
        metrics = reply.metrics.to_dict()

        assert metrics["total_latency_ms"] >= 0
        assert set(metrics) == {
            "retrieval_latency_ms", "llm_latency_ms", "tts_latency_ms", "total_latency_ms"
        }


class TestChat:
    """Tests for session-aware chat."""

    async def test_records_both_turns(self, pipeline, session):
        reply = await pipeline.chat(session, "cloud migration")

        assert [t.role for t in session.turns] == ["user", "assistant"]
        assert session.turns[0].content == "cloud migration"
        assert session.turns[1].content == reply.message
        assert session.turns[1].knowledge_ids == reply.knowledge_ids

    async def test_uses_session_history(self, pipeline, session, llm_service):
        await pipeline.chat(session, "hello")

        with patch.object(llm_service, "complete", AsyncMock(wraps=llm_service.complete)) as complete:
            await pipeline.chat(session, "what about pricing")

        contents = [m["content"] for m in complete.call_args.args[0][1:]]
        assert contents[0] == "hello"
        assert contents[-1] == "what about pricing"
        assert len(contents) == 3

    async def test_explicit_history_overrides_session(self, pipeline, session, llm_service):
        await pipeline.chat(session, "hello")

        with patch.object(llm_service, "complete", AsyncMock(wraps=llm_service.complete)) as complete:
            await pipeline.chat(session, "pricing", history=[])

        assert len(complete.call_args.args[0]) == 2

    async def test_remembers_model(self, pipeline, session):
        await pipeline.chat(session, "hello", model_id="groq-llama-3.1-8b")
        assert session.model_id == "groq-llama-3.1-8b"

        reply = await pipeline.chat(session, "hello again")
        assert reply.model_id == "groq-llama-3.1-8b"

    async def test_failed_reply_records_nothing(self, pipeline, session, llm_service):
        with patch.object(llm_service, "complete", AsyncMock(side_effect=LLMTimeoutException(15))):
            with pytest.raises(LLMTimeoutException):
                await pipeline.chat(session, "hello")

        assert session.turns == []


class TestVoiceAdapters:
    """Tests for SessionDispatcher and SessionTranscriber."""

    async def test_dispatcher_returns_payload(self, pipeline, session):
        dispatcher = SessionDispatcher(pipeline, session)

        payload = await dispatcher.respond("what services do you offer")

        assert isinstance(dispatcher.last_reply, ChatReply)
        assert payload.message == dispatcher.last_reply.message
        assert payload.tts_hint == BROWSER_TTS_HINT
        assert session.turn_count == 2

    async def test_dispatcher_model_override(self, pipeline, session):
        dispatcher = SessionDispatcher(pipeline, session, model_id="groq-llama-3.3-70b")

        await dispatcher.respond("hello")

        assert dispatcher.last_reply.model_id == "groq-llama-3.3-70b"

    async def test_transcriber(self, pipeline, session, conversation_logger):
        transcriber = SessionTranscriber(pipeline, session)

        text = await transcriber.transcribe(b"\x00" * 2048)

        assert text == MOCK_TRANSCRIPT
        log = conversation_logger.log_path.read_text(encoding="utf-8")
        assert "**Source:** transcription" in log
