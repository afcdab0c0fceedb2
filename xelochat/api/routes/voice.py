"""
Voice WebSocket Endpoint.
Hosts the conversation state machine for a browser client.
"""

import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from xelochat.api.remote import (
    ClientChannel,
    RemoteAudioRecorder,
    RemotePlaybackDevice,
    RemoteSpeechRecognizer,
    parse_generation,
    parse_segments
)
from xelochat.config import get_settings
from xelochat.core.conversation import ConversationState, VoiceConversation
from xelochat.core.exceptions import XeloChatException
from xelochat.core.pipeline import ChatPipeline, SessionDispatcher, SessionTranscriber
from xelochat.core.session import ChatSession
from xelochat.services.llm import get_model

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter()


class VoiceSocketSession:
    """
    One connected voice client.

    Capabilities announced in `hello` decide how listening works: the
    client's continuous recognizer when it has one, otherwise push-to-talk
    recording with server-side transcription.
    """

    def __init__(self, channel: ClientChannel, pipeline: ChatPipeline, session: ChatSession):
        self.channel = channel
        self.pipeline = pipeline
        self.session = session

        self.recognizer = RemoteSpeechRecognizer(channel, settings.RECOGNITION_LANGUAGE)
        self.recorder = RemoteAudioRecorder(channel)
        self.player = RemotePlaybackDevice(channel)
        self.recorder_supported = True

        self.dispatcher = SessionDispatcher(pipeline, session, session.model_id)
        self.conversation: Optional[VoiceConversation] = None

    def _build_conversation(self) -> VoiceConversation:
        return VoiceConversation(
            self.dispatcher,
            self.player,
            recognizer=self.recognizer,
            recorder=self.recorder if self.recorder_supported else None,
            transcriber=SessionTranscriber(self.pipeline, self.session),
            wake_word=settings.WAKE_WORD,
            silence_timeout_ms=settings.SILENCE_TIMEOUT_MS,
            on_state_change=self._send_state,
            on_transcript=self._send_transcript,
            on_wake_word=self._send_wake_word,
            on_error=self._send_error
        )

    # =========================
    # Outbound
    # =========================

    def _send_state(self, state: ConversationState):
        self.channel.send({
            "type": "state",
            "state": state.value,
            "mode": self.conversation.mode.value if self.conversation and self.conversation.mode else None
        })

    def _send_transcript(self, text: str, final: bool):
        self.channel.send({"type": "transcript", "text": text, "final": final})

    def _send_wake_word(self):
        self.channel.send({"type": "wake_word", "wake_word": settings.WAKE_WORD})

    def _send_error(self, error: XeloChatException):
        self.channel.send({
            "type": "error",
            "error": error.error_code,
            "message": error.message,
            "details": error.details
        })

    def reject(self, message: str):
        self.channel.send({"type": "error", "error": "BAD_MESSAGE", "message": message, "details": {}})

    # =========================
    # Inbound
    # =========================

    async def handle_audio(self, data: bytes):
        self.recorder.append(data)

    async def handle_message(self, data: Dict[str, Any]):
        msg_type = data.get("type")

        if msg_type == "hello":
            await self._handle_hello(data)

        elif msg_type == "start":
            if self.conversation is None:
                self.conversation = self._build_conversation()
            await self.conversation.start_listening()

        elif msg_type == "stop":
            if self.conversation is not None:
                await self.conversation.stop_listening()

        elif msg_type in ("recognition.result", "recognition.error", "recognition.end"):
            self._handle_recognition(msg_type, data)

        elif msg_type == "playback.ended":
            self.player.ended()

        elif msg_type == "playback.error":
            self.player.failed(str(data.get("error") or "unknown"))

        elif msg_type == "ping":
            self.channel.send({"type": "pong"})

        else:
            self.reject(f"Unknown message type: {msg_type}")

    def _handle_recognition(self, msg_type: str, data: Dict[str, Any]):
        try:
            generation = parse_generation(data.get("generation"))
            segments = parse_segments(data.get("results")) if msg_type == "recognition.result" else None
        except ValueError as e:
            self.reject(str(e))
            return

        if segments is not None:
            self.recognizer.deliver_results(generation, segments)
        elif msg_type == "recognition.error":
            self.recognizer.deliver_error(generation, str(data.get("error") or "unknown"))
        else:
            self.recognizer.deliver_end(generation)

    async def _handle_hello(self, data: Dict[str, Any]):
        capabilities = data.get("capabilities") or {}
        self.recognizer.supported = bool(capabilities.get("recognition", True))
        self.recorder_supported = bool(capabilities.get("recorder", True))

        model_id = data.get("model_id")
        if model_id:
            try:
                model = get_model(model_id)
            except XeloChatException as e:
                self._send_error(e)
                return
            self.dispatcher.model_id = model.id
            self.session.model_id = model.id

        # Rebuild with the new capabilities unless a turn is in flight
        if self.conversation is not None and self.conversation.state == ConversationState.IDLE:
            await self.conversation.close()
            self.conversation = None

        self.channel.send({
            "type": "session",
            "session_id": self.session.session_id,
            "model_id": self.session.model_id,
            "wake_word": settings.WAKE_WORD
        })

    async def close(self):
        self.player.cancel()
        if self.conversation is not None:
            await self.conversation.close()


@router.websocket("/stream")
async def voice_stream(
    websocket: WebSocket,
    session_id: Optional[str] = None
):
    """
    WebSocket endpoint for voice conversations.

    Protocol:
    1. Client connects with optional session_id and receives {"type": "session"}
    2. Client may send {"type": "hello", "capabilities": {...}, "model_id": ...}
    3. {"type": "start"} begins listening; the server answers with
       recognizer.start (continuous) or recorder.start (push-to-talk)
    4. Continuous: client forwards recognition.result / .error / .end events,
       each echoing the generation from the latest recognizer.start
       Push-to-talk: client sends binary audio frames, then {"type": "stop"}
    5. Server sends state, transcript and response messages; the client plays
       the response and reports playback.ended or playback.error
    """
    await websocket.accept()

    app = websocket.app
    session_manager = app.state.session_manager
    conversation_logger = app.state.conversation_logger

    session = await session_manager.get_session(session_id) if session_id else None
    if session is None:
        session = await session_manager.create_session(session_id)
        await conversation_logger.log_session_start(session.session_id, session.model_id, "websocket")

    channel = ClientChannel(websocket)
    channel.start()

    client = VoiceSocketSession(channel, app.state.pipeline, session)

    channel.send({
        "type": "session",
        "session_id": session.session_id,
        "model_id": session.model_id,
        "wake_word": settings.WAKE_WORD
    })

    try:
        while True:
            message = await websocket.receive()

            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect()

            if message.get("bytes") is not None:
                await client.handle_audio(message["bytes"])
                continue

            if message.get("text") is not None:
                try:
                    data = json.loads(message["text"])
                except json.JSONDecodeError:
                    logger.warning(f"Invalid JSON message: {message['text']}")
                    client.reject("Invalid JSON")
                    continue

                if not isinstance(data, dict):
                    client.reject("Messages must be JSON objects")
                    continue

                await client.handle_message(data)

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected: {session.session_id}")
    except Exception as e:
        logger.exception(f"WebSocket error: {e}")
    finally:
        await client.close()
        await channel.close()
        await session_manager.touch(session)
