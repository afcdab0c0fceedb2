"""Pytest configuration and fixtures."""
import asyncio
import os
import tempfile
from typing import Callable, List, Optional, Sequence

import pytest

# Set test environment before importing the application
_TEST_DIR = tempfile.mkdtemp(prefix="xelochat-tests-")
os.environ["ENVIRONMENT"] = "test"
os.environ["GROQ_API_KEY"] = ""
os.environ["TTS_ENABLED"] = "false"
os.environ["DEFAULT_MODEL_ID"] = "mock"
os.environ["WAKE_WORD"] = "hey xelo"
os.environ["SILENCE_TIMEOUT_MS"] = "2000"
os.environ["AUDIO_DIR"] = os.path.join(_TEST_DIR, "uploads")
os.environ["AGENT_LOG_PATH"] = os.path.join(_TEST_DIR, "logs", "conversation_log.md")

from xelochat.core.conversation import ResponsePayload
from xelochat.core.exceptions import PlaybackException
from xelochat.core.voice_input import RecognitionHandler, RecognitionSegment
from xelochat.knowledge import load_default_knowledge_base
from xelochat.services.llm import LLMService
from xelochat.services.stt import STTService
from xelochat.services.tts import TTSService


# =========================
# Fake clock
# =========================

class FakeHandle:
    """Timer handle returned by FakeScheduler."""

    def __init__(self, when: float, callback: Callable[[], None]):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    """Scheduler driven by explicit `advance` calls instead of wall-clock time."""

    def __init__(self):
        self.now = 0.0
        self._handles: List[FakeHandle] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> FakeHandle:
        handle = FakeHandle(self.now + delay, callback)
        self._handles.append(handle)
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for h in self._handles if not h.cancelled)

    def advance(self, ms: float):
        target = self.now + ms / 1000
        while True:
            due = [h for h in self._handles if not h.cancelled and h.when <= target]
            if not due:
                break
            handle = min(due, key=lambda h: h.when)
            self._handles.remove(handle)
            self.now = handle.when
            handle.callback()
        self.now = target


# =========================
# Fake devices
# =========================

class FakeRecognizer:
    """
    Scriptable recognizer. Keeps its handler after stop() so tests can
    deliver late events from a stopped session.
    """

    def __init__(self, available: bool = True):
        self.available = available
        self.handler: Optional[RecognitionHandler] = None
        self.start_calls = 0
        self.stop_calls = 0
        self.fail_start: Optional[Exception] = None

    def start(self, handler: RecognitionHandler) -> None:
        self.start_calls += 1
        if self.fail_start is not None:
            raise self.fail_start
        self.handler = handler

    def stop(self) -> None:
        self.stop_calls += 1

    def results(self, segments: Sequence[RecognitionSegment]):
        self.handler.on_results(list(segments))

    def final(self, text: str):
        self.results([RecognitionSegment(text, is_final=True)])

    def interim(self, text: str):
        self.results([RecognitionSegment(text, is_final=False)])

    def error(self, reason: str):
        self.handler.on_error(reason)

    def end(self):
        self.handler.on_end()


class FakeRecorder:
    def __init__(self, audio: Optional[bytes] = b"\x00" * 2048):
        self.audio = audio
        self.started = 0
        self.stopped = 0
        self.fail_start: Optional[Exception] = None

    async def start(self) -> None:
        if self.fail_start is not None:
            raise self.fail_start
        self.started += 1

    async def stop(self) -> Optional[bytes]:
        self.stopped += 1
        return self.audio


class FakeTranscriber:
    def __init__(self, text: str = "tell me about cloud migration"):
        self.text = text
        self.calls: List[bytes] = []
        self.error: Optional[Exception] = None

    async def transcribe(self, audio_data: bytes) -> str:
        self.calls.append(audio_data)
        if self.error is not None:
            raise self.error
        return self.text


class FakeDispatcher:
    def __init__(self):
        self.utterances: List[str] = []
        self.error: Optional[Exception] = None
        self.delay: float = 0.0

    async def respond(self, utterance: str) -> ResponsePayload:
        self.utterances.append(utterance)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return ResponsePayload(message=f"Reply to: {utterance}", audio_url="/audio/speech-test.mp3")


class FakePlayer:
    """
    Playback device. Finishes immediately unless `manual` is set, in which
    case the test resolves it with `finish()` or `fail()`.
    """

    def __init__(self, manual: bool = False):
        self.manual = manual
        self.played: List[ResponsePayload] = []
        self.error: Optional[Exception] = None
        self._future: Optional[asyncio.Future] = None

    async def play(self, payload: ResponsePayload) -> None:
        self.played.append(payload)
        if self.error is not None:
            raise self.error
        if not self.manual:
            return
        self._future = asyncio.get_running_loop().create_future()
        await self._future

    @property
    def waiting(self) -> bool:
        return self._future is not None and not self._future.done()

    def finish(self):
        self._future.set_result(None)

    def fail(self, reason: str):
        self._future.set_exception(PlaybackException(reason))


# =========================
# Fixtures
# =========================

@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def recognizer():
    return FakeRecognizer()


@pytest.fixture
def recorder():
    return FakeRecorder()


@pytest.fixture
def transcriber():
    return FakeTranscriber()


@pytest.fixture
def dispatcher():
    return FakeDispatcher()


@pytest.fixture
def player():
    return FakePlayer()


@pytest.fixture
def knowledge_base():
    return load_default_knowledge_base()


@pytest.fixture
def llm_service():
    """LLM service without an API key (mock mode)."""
    return LLMService(api_key="")


@pytest.fixture
def stt_service():
    """STT service without an API key (mock mode)."""
    return STTService(api_key="")


@pytest.fixture
def tts_service(tmp_path):
    """Disabled TTS writing into a temp directory."""
    return TTSService(audio_dir=tmp_path / "audio", enabled=False)


@pytest.fixture
def manual_player():
    """Playback device resolved explicitly by the test."""
    return FakePlayer(manual=True)
