"""
Speech-to-Text Service using Groq Whisper.
Manual transcription for clients that cannot run continuous recognition.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Optional

from groq import AsyncGroq, APIError

from xelochat.config import get_settings
from xelochat.core.exceptions import (
    STTException,
    STTNoAudioException,
    STTTimeoutException
)

logger = logging.getLogger(__name__)
settings = get_settings()


MOCK_TRANSCRIPT = "This is a mock transcription for testing."


@dataclass
class STTResult:
    """Result from speech-to-text transcription."""
    text: str
    language: str
    audio_bytes: int
    processing_time_ms: Optional[float] = None
    is_mock: bool = False


class STTService:
    """
    Speech-to-Text service backed by Groq's hosted Whisper models.

    Accepts any container the browser recorder produces (webm, ogg, wav, mp3).
    Runs in mock mode when GROQ_API_KEY is not configured.
    """

    def __init__(self, api_key: Optional[str] = None):
        self._api_key = api_key if api_key is not None else settings.GROQ_API_KEY
        self._client: Optional[AsyncGroq] = None
        self._is_initialized = False
        self._model = settings.STT_MODEL_ID

    @property
    def is_initialized(self) -> bool:
        return self._is_initialized

    async def initialize(self):
        """Initialize the Groq client."""
        if not self._api_key:
            logger.warning("GROQ_API_KEY not set, using mock STT")
            self._is_initialized = False
            return

        try:
            logger.info("Initializing STT service...")
            self._client = AsyncGroq(api_key=self._api_key)
            self._is_initialized = True
            logger.info(f"STT service initialized with model: {self._model}")

        except Exception as e:
            logger.error(f"Failed to initialize STT service: {e}")
            self._is_initialized = False

    async def transcribe(
        self,
        audio_data: bytes,
        filename: str = "recording.webm",
        language_hint: Optional[str] = None
    ) -> STTResult:
        """
        Transcribe a complete recording.

        Args:
            audio_data: Encoded audio bytes as recorded by the client
            filename: Name whose extension tells the provider the container
            language_hint: Optional ISO language code, e.g. "en"

        Returns:
            STTResult with transcription and metadata
        """
        if len(audio_data) < settings.MIN_AUDIO_BYTES:
            raise STTNoAudioException(len(audio_data))

        language = language_hint or settings.RECOGNITION_LANGUAGE.split("-")[0]

        if not self._is_initialized:
            return self._mock_transcribe(audio_data, language)

        start_time = time.time()

        try:
            transcription = await asyncio.wait_for(
                self._client.audio.transcriptions.create(
                    file=(filename, audio_data),
                    model=self._model,
                    language=language,
                    response_format="json"
                ),
                timeout=settings.STT_TIMEOUT_SECONDS
            )
        except asyncio.TimeoutError:
            raise STTTimeoutException(settings.STT_TIMEOUT_SECONDS)
        except APIError as e:
            logger.error(f"Transcription error: {e}")
            raise STTException(f"Transcription failed: {e}")

        return STTResult(
            text=(transcription.text or "").strip(),
            language=language,
            audio_bytes=len(audio_data),
            processing_time_ms=(time.time() - start_time) * 1000
        )

    def _mock_transcribe(self, audio_data: bytes, language: str) -> STTResult:
        """Mock transcription for development/testing."""
        return STTResult(
            text=MOCK_TRANSCRIPT,
            language=language,
            audio_bytes=len(audio_data),
            processing_time_ms=0.0,
            is_mock=True
        )

    async def cleanup(self):
        """Cleanup resources."""
        if self._client is not None:
            await self._client.close()
        self._client = None
        self._is_initialized = False
        logger.info("STT service cleaned up")
