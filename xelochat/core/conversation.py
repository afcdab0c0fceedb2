"""
Voice conversation state machine.
Drives idle -> listening -> processing -> speaking -> idle for one client.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Protocol

from xelochat.config import get_settings
from xelochat.core.exceptions import (
    XeloChatException,
    PipelineStageException,
    PipelineTimeoutException,
    PlaybackException,
    RecognitionException,
    RecognitionUnavailableException
)
from xelochat.core.timers import Scheduler
from xelochat.core.voice_input import (
    AudioRecorder,
    ContinuousVoiceInput,
    PushToTalkInput,
    SpeechRecognizer,
    Transcriber
)

logger = logging.getLogger(__name__)
settings = get_settings()


class ConversationState(str, Enum):
    IDLE = "idle"
    LISTENING = "listening"
    PROCESSING = "processing"
    SPEAKING = "speaking"


class InputMode(str, Enum):
    CONTINUOUS = "continuous"
    PUSH_TO_TALK = "push_to_talk"


@dataclass
class ResponsePayload:
    """Reply handed to playback."""
    message: str
    audio_url: Optional[str] = None
    tts_hint: Optional[str] = None


class ResponseDispatcher(Protocol):
    async def respond(self, utterance: str) -> ResponsePayload: ...


class PlaybackDevice(Protocol):
    """Plays a reply. Returns when playback ends, raises when it fails."""

    async def play(self, payload: ResponsePayload) -> None: ...


class VoiceConversation:
    """
    Conversation state machine for a single client.

    Listening uses continuous recognition when the recognizer is available,
    otherwise push-to-talk when a recorder and transcriber were supplied.
    Every failure is reported through `on_error` and returns the machine to
    IDLE; nothing raises out of the event handlers.
    """

    def __init__(
        self,
        dispatcher: ResponseDispatcher,
        player: PlaybackDevice,
        recognizer: Optional[SpeechRecognizer] = None,
        recorder: Optional[AudioRecorder] = None,
        transcriber: Optional[Transcriber] = None,
        scheduler: Optional[Scheduler] = None,
        wake_word: Optional[str] = None,
        silence_timeout_ms: Optional[int] = None,
        response_timeout_seconds: Optional[float] = None,
        playback_timeout_seconds: Optional[float] = None,
        on_state_change: Optional[Callable[[ConversationState], None]] = None,
        on_transcript: Optional[Callable[[str, bool], None]] = None,
        on_wake_word: Optional[Callable[[], None]] = None,
        on_reply: Optional[Callable[[ResponsePayload], None]] = None,
        on_error: Optional[Callable[[XeloChatException], None]] = None
    ):
        self._dispatcher = dispatcher
        self._player = player
        self._recognizer = recognizer

        self._on_state_change = on_state_change
        self._on_transcript = on_transcript
        self._on_reply = on_reply
        self._on_error = on_error

        self.response_timeout = (
            settings.RESPONSE_TIMEOUT_SECONDS if response_timeout_seconds is None
            else response_timeout_seconds
        )
        self.playback_timeout = (
            settings.PLAYBACK_TIMEOUT_SECONDS if playback_timeout_seconds is None
            else playback_timeout_seconds
        )

        self._continuous: Optional[ContinuousVoiceInput] = None
        if recognizer is not None:
            self._continuous = ContinuousVoiceInput(
                recognizer,
                on_finalized=self._handle_utterance,
                on_error=self._handle_recognition_error,
                on_interim=self._handle_interim,
                on_wake_word=on_wake_word,
                wake_word=wake_word,
                silence_timeout_ms=silence_timeout_ms,
                scheduler=scheduler
            )

        self._push_to_talk: Optional[PushToTalkInput] = None
        if recorder is not None and transcriber is not None:
            self._push_to_talk = PushToTalkInput(recorder, transcriber)

        self._state = ConversationState.IDLE
        self._mode: Optional[InputMode] = None
        self._task: Optional[asyncio.Task] = None

        self.last_utterance: Optional[str] = None
        self.last_error: Optional[str] = None

    # =========================
    # State
    # =========================

    @property
    def state(self) -> ConversationState:
        return self._state

    @property
    def mode(self) -> Optional[InputMode]:
        return self._mode

    @property
    def voice_input(self) -> Optional[ContinuousVoiceInput]:
        return self._continuous

    @property
    def awaiting_wake_word(self) -> bool:
        return self._continuous is not None and self._continuous.awaiting_wake_word

    def _set_state(self, state: ConversationState):
        if state == self._state:
            return
        logger.debug(f"Conversation state {self._state.value} -> {state.value}")
        self._state = state
        if self._on_state_change is not None:
            self._on_state_change(state)

    def _report(self, error: XeloChatException):
        self.last_error = error.message
        logger.warning(f"Conversation error [{error.error_code}]: {error.message}")
        self._set_state(ConversationState.IDLE)
        if self._on_error is not None:
            self._on_error(error)

    # =========================
    # Commands
    # =========================

    async def start_listening(self) -> bool:
        """
        Start a listening session. A no-op unless the conversation is idle.
        Returns True when a session was started.
        """
        if self._state != ConversationState.IDLE:
            logger.debug(f"Ignoring start while {self._state.value}")
            return False

        self.last_error = None

        if self._continuous is not None and self._recognizer.available:
            self._mode = InputMode.CONTINUOUS
            self._set_state(ConversationState.LISTENING)
            try:
                self._continuous.start()
            except RecognitionException as e:
                self._report(e)
                return False
            return self._continuous.is_listening

        if self._push_to_talk is not None:
            self._mode = InputMode.PUSH_TO_TALK
            self._set_state(ConversationState.LISTENING)
            try:
                await self._push_to_talk.start()
            except RecognitionException as e:
                self._report(e)
                return False
            return True

        self._report(RecognitionUnavailableException())
        return False

    async def stop_listening(self):
        """Stop the current listening session and hand off what was heard."""
        if self._state != ConversationState.LISTENING:
            return

        if self._mode == InputMode.CONTINUOUS and self._continuous is not None:
            # Finalizing calls back into _handle_utterance
            self._continuous.stop()
            return

        if self._mode == InputMode.PUSH_TO_TALK and self._push_to_talk is not None:
            self._set_state(ConversationState.PROCESSING)
            self._spawn(self._transcribe_and_respond())

    async def wait_until_settled(self):
        """Wait for any in-flight response and playback to finish."""
        while self._task is not None and not self._task.done():
            await self._task

    async def close(self):
        """Tear down listening and cancel in-flight work."""
        if self._continuous is not None and self._continuous.is_listening:
            self._continuous.stop()

        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

        self._task = None
        self._set_state(ConversationState.IDLE)

    # =========================
    # Voice Input Callbacks
    # =========================

    def _handle_interim(self, text: str):
        if self._on_transcript is not None:
            self._on_transcript(text, False)

    def _handle_recognition_error(self, error: RecognitionException):
        self._report(error)

    def _handle_utterance(self, utterance: str):
        self.last_utterance = utterance

        if self._on_transcript is not None:
            self._on_transcript(utterance, True)

        if not utterance:
            self._set_state(ConversationState.IDLE)
            return

        self._set_state(ConversationState.PROCESSING)
        self._spawn(self._respond(utterance))

    # =========================
    # Response Handoff
    # =========================

    def _spawn(self, coro):
        self._task = asyncio.get_running_loop().create_task(coro)

    async def _transcribe_and_respond(self):
        try:
            utterance = await self._push_to_talk.stop()
        except XeloChatException as e:
            self._report(e)
            return
        except Exception as e:
            logger.exception(f"Transcription failed: {e}")
            self._report(PipelineStageException("transcription", str(e)))
            return

        self.last_utterance = utterance
        if self._on_transcript is not None:
            self._on_transcript(utterance, True)

        if not utterance:
            self._set_state(ConversationState.IDLE)
            return

        await self._respond(utterance)

    async def _respond(self, utterance: str):
        try:
            payload = await asyncio.wait_for(
                self._dispatcher.respond(utterance),
                timeout=self.response_timeout
            )
        except asyncio.TimeoutError:
            self._report(PipelineTimeoutException(self.response_timeout))
            return
        except XeloChatException as e:
            self._report(e)
            return
        except Exception as e:
            logger.exception(f"Response pipeline failed: {e}")
            self._report(PipelineStageException("response", str(e)))
            return

        if self._on_reply is not None:
            self._on_reply(payload)

        self._set_state(ConversationState.SPEAKING)
        await self._play(payload)

    async def _play(self, payload: ResponsePayload):
        try:
            await asyncio.wait_for(self._player.play(payload), timeout=self.playback_timeout)
        except asyncio.TimeoutError:
            self._report(PlaybackException(f"no completion signal after {self.playback_timeout} seconds"))
        except XeloChatException as e:
            self._report(e)
        except Exception as e:
            self._report(PlaybackException(str(e) or type(e).__name__))
        else:
            self._set_state(ConversationState.IDLE)
