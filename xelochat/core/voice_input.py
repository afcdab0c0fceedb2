"""
Voice input capture.
Turns a noisy stream of recognition events into a single clean utterance,
gated by a wake word and ended by silence, with a push-to-talk fallback.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Protocol, Sequence

from xelochat.config import get_settings
from xelochat.core.exceptions import (
    RecognitionException,
    RecognitionRuntimeException,
    RecognitionUnavailableException,
    STTNoAudioException
)
from xelochat.core.timers import CancellableTimer, Scheduler

logger = logging.getLogger(__name__)
settings = get_settings()


class ListeningPhase(str, Enum):
    AWAITING_WAKE_WORD = "awaiting_wake_word"
    CAPTURING_UTTERANCE = "capturing_utterance"


@dataclass(frozen=True)
class RecognitionSegment:
    """One recognizer hypothesis. Only final segments are trusted."""
    transcript: str
    is_final: bool = False


class RecognitionHandler(Protocol):
    """Callbacks a recognizer drives while it is running."""

    def on_results(self, segments: Sequence[RecognitionSegment]) -> None: ...

    def on_error(self, reason: str) -> None: ...

    def on_end(self) -> None: ...


class SpeechRecognizer(Protocol):
    """Continuous speech recognition facility supplied by the host runtime."""

    @property
    def available(self) -> bool: ...

    def start(self, handler: RecognitionHandler) -> None: ...

    def stop(self) -> None: ...


class AudioRecorder(Protocol):
    """Explicit start/stop recorder used when recognition is unavailable."""

    async def start(self) -> None: ...

    async def stop(self) -> Optional[bytes]: ...


class Transcriber(Protocol):
    async def transcribe(self, audio_data: bytes) -> str: ...


class _RecognitionBinding:
    """
    Routes recognizer callbacks to the session that started it.

    Once the owning session tears down, the binding is detached and any late
    events from the old recognizer are ignored.
    """

    def __init__(self, owner: "ContinuousVoiceInput"):
        self._owner: Optional["ContinuousVoiceInput"] = owner

    def detach(self):
        self._owner = None

    def on_results(self, segments: Sequence[RecognitionSegment]) -> None:
        if self._owner is not None:
            self._owner._handle_results(segments)

    def on_error(self, reason: str) -> None:
        if self._owner is not None:
            self._owner._handle_error(reason)

    def on_end(self) -> None:
        if self._owner is not None:
            self._owner._handle_end()


class ContinuousVoiceInput:
    """
    Wake-word gated utterance capture over a continuous recognizer.

    A session starts in AWAITING_WAKE_WORD (or directly in
    CAPTURING_UTTERANCE when no wake word is configured). Final segments
    containing the wake word open the gate; after that, final segments
    accumulate and every event re-arms the silence timer. The session ends
    on explicit stop, silence timeout or recognizer end, and reports the
    trimmed transcript through `on_finalized` exactly once. Recognizer
    errors end the session through `on_error` instead, with no transcript.
    """

    def __init__(
        self,
        recognizer: SpeechRecognizer,
        on_finalized: Callable[[str], None],
        on_error: Callable[[RecognitionException], None],
        on_interim: Optional[Callable[[str], None]] = None,
        on_wake_word: Optional[Callable[[], None]] = None,
        wake_word: Optional[str] = None,
        silence_timeout_ms: Optional[int] = None,
        scheduler: Optional[Scheduler] = None
    ):
        self._recognizer = recognizer
        self._on_finalized = on_finalized
        self._on_error = on_error
        self._on_interim = on_interim
        self._on_wake_word = on_wake_word

        wake_word = settings.WAKE_WORD if wake_word is None else wake_word
        self.wake_word = wake_word.strip().lower()

        self._silence_timer = CancellableTimer(
            settings.SILENCE_TIMEOUT_MS if silence_timeout_ms is None else silence_timeout_ms,
            self._handle_silence,
            scheduler
        )

        self._binding: Optional[_RecognitionBinding] = None
        self._phase = ListeningPhase.AWAITING_WAKE_WORD
        self._accumulated = ""
        self._interim = ""

    # =========================
    # State
    # =========================

    @property
    def is_listening(self) -> bool:
        return self._binding is not None

    @property
    def phase(self) -> ListeningPhase:
        return self._phase

    @property
    def awaiting_wake_word(self) -> bool:
        return self.is_listening and self._phase == ListeningPhase.AWAITING_WAKE_WORD

    @property
    def transcript(self) -> str:
        """Accumulated final text of the current session."""
        return self._accumulated.strip()

    @property
    def display_transcript(self) -> str:
        """Accumulated final text followed by the live interim hypothesis."""
        return (self._accumulated + self._interim).strip()

    @property
    def silence_timer_active(self) -> bool:
        return self._silence_timer.active

    # =========================
    # Commands
    # =========================

    def start(self) -> bool:
        """
        Begin a listening session.

        Returns False without side effects when a session is already running.
        Raises RecognitionUnavailableException when the recognizer is missing,
        and RecognitionRuntimeException when it refuses to start.
        """
        if self._binding is not None:
            logger.debug("Listening session already active, ignoring start")
            return False

        if not self._recognizer.available:
            raise RecognitionUnavailableException()

        self._silence_timer.cancel()
        self._accumulated = ""
        self._interim = ""
        self._phase = (
            ListeningPhase.AWAITING_WAKE_WORD if self.wake_word
            else ListeningPhase.CAPTURING_UTTERANCE
        )

        binding = _RecognitionBinding(self)
        self._binding = binding

        try:
            self._recognizer.start(binding)
        except Exception as e:
            self._teardown()
            raise RecognitionRuntimeException(str(e) or "failed to start") from e

        logger.info(f"Listening session started (phase={self._phase.value})")
        return True

    def stop(self):
        """Stop listening and finalize whatever has accumulated."""
        if self._binding is None:
            return
        self._finish("stopped")

    # =========================
    # Recognizer Events
    # =========================

    def _handle_results(self, segments: Sequence[RecognitionSegment]):
        interim_parts: List[str] = []
        saw_event = False

        for segment in segments:
            if self._phase == ListeningPhase.AWAITING_WAKE_WORD:
                if segment.is_final and self.wake_word in segment.transcript.lower():
                    logger.info("Wake word detected, capturing utterance")
                    self._phase = ListeningPhase.CAPTURING_UTTERANCE
                    self._accumulated = ""
                    self._interim = ""
                    self._silence_timer.start()
                    if self._on_wake_word is not None:
                        self._on_wake_word()
                continue

            saw_event = True
            if segment.is_final:
                self._accumulated += segment.transcript + " "
            else:
                interim_parts.append(segment.transcript)

        if not saw_event:
            return

        self._interim = "".join(interim_parts)
        self._silence_timer.reset()

        if self._on_interim is not None:
            self._on_interim(self.display_transcript)

    def _handle_error(self, reason: str):
        logger.warning(f"Speech recognition error: {reason}")
        self._teardown()
        self._on_error(RecognitionRuntimeException(reason))

    def _handle_end(self):
        # Recognizer ended on its own; keep what was heard
        self._finish("recognizer ended")

    def _handle_silence(self):
        if self._binding is None:
            return
        self._finish("silence timeout")

    # =========================
    # Teardown
    # =========================

    def _finish(self, reason: str):
        utterance = self._accumulated.strip()
        self._teardown()
        logger.info(f"Listening session finished ({reason}), utterance length {len(utterance)}")
        self._on_finalized(utterance)

    def _teardown(self):
        binding = self._binding
        self._binding = None
        self._silence_timer.cancel()
        self._interim = ""
        self._phase = ListeningPhase.AWAITING_WAKE_WORD

        if binding is not None:
            binding.detach()
            try:
                self._recognizer.stop()
            except Exception as e:
                logger.warning(f"Failed to stop recognizer: {e}")


class PushToTalkInput:
    """
    Explicit record/stop capture with a manual transcription call.

    Used when continuous recognition is unavailable. There is no wake-word
    gate; the user started recording on purpose.
    """

    def __init__(self, recorder: AudioRecorder, transcriber: Transcriber):
        self._recorder = recorder
        self._transcriber = transcriber
        self._recording = False

    @property
    def is_recording(self) -> bool:
        return self._recording

    async def start(self) -> bool:
        if self._recording:
            return False

        try:
            await self._recorder.start()
        except Exception as e:
            raise RecognitionRuntimeException(str(e) or "Failed to start recording") from e

        self._recording = True
        logger.info("Push-to-talk recording started")
        return True

    async def stop(self) -> str:
        """Stop recording and transcribe it. Returns "" when nothing was captured."""
        if not self._recording:
            return ""

        self._recording = False
        audio_data = await self._recorder.stop()
        if not audio_data:
            logger.info("Push-to-talk stopped with no audio")
            return ""

        try:
            text = await self._transcriber.transcribe(audio_data)
        except STTNoAudioException:
            logger.info("Push-to-talk recording too short to transcribe")
            return ""
        return (text or "").strip()
