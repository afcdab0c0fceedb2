"""
Text-to-Speech Service using edge-tts.
Synthesizes replies to mp3 files served under /audio, and purges old ones.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import edge_tts

from xelochat.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


AUDIO_URL_PREFIX = "/audio"


@dataclass
class TTSResult:
    """Result from text-to-speech synthesis."""
    path: Path
    audio_url: str
    size_bytes: int
    processing_time_ms: Optional[float] = None


class TTSService:
    """
    Text-to-Speech service using Microsoft Edge neural voices.

    Synthesis never fails the reply: when TTS is disabled, times out or errors,
    `synthesize` returns None and the client speaks the text itself.
    """

    def __init__(
        self,
        audio_dir: Optional[Path] = None,
        voice: Optional[str] = None,
        enabled: Optional[bool] = None
    ):
        self.audio_dir = Path(audio_dir or settings.AUDIO_DIR)
        self.voice = voice or settings.TTS_VOICE
        self.enabled = settings.TTS_ENABLED if enabled is None else enabled
        self._cleanup_task: Optional[asyncio.Task] = None

    async def initialize(self):
        """Prepare the audio directory and start the retention task."""
        self.audio_dir.mkdir(parents=True, exist_ok=True)
        self._cleanup_task = asyncio.create_task(self._cleanup_loop())

        if self.enabled:
            logger.info(f"TTS service initialized with voice: {self.voice}")
        else:
            logger.info("TTS disabled, replies will use browser speech synthesis")

    async def synthesize(self, text: str) -> Optional[TTSResult]:
        """
        Synthesize speech for a reply.

        Args:
            text: Text to synthesize

        Returns:
            TTSResult pointing at the written mp3, or None when no audio was produced
        """
        if not self.enabled or not text.strip():
            return None

        start_time = time.time()

        try:
            audio_data = await asyncio.wait_for(
                self._edge_tts_synthesize(text),
                timeout=settings.TTS_TIMEOUT_SECONDS
            )
        except asyncio.TimeoutError:
            logger.warning(f"TTS timed out after {settings.TTS_TIMEOUT_SECONDS} seconds")
            return None
        except Exception as e:
            logger.warning(f"edge-tts error: {e}")
            return None

        if not audio_data:
            logger.warning("edge-tts returned no audio")
            return None

        filename = f"speech-{uuid.uuid4()}.mp3"
        path = self.audio_dir / filename

        try:
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, path.write_bytes, audio_data)
        except OSError as e:
            logger.error(f"Failed to write audio file {path}: {e}")
            return None

        return TTSResult(
            path=path,
            audio_url=f"{AUDIO_URL_PREFIX}/{filename}",
            size_bytes=len(audio_data),
            processing_time_ms=(time.time() - start_time) * 1000
        )

    async def _edge_tts_synthesize(self, text: str) -> bytes:
        communicate = edge_tts.Communicate(text, self.voice)
        audio_data = b''

        async for chunk in communicate.stream():
            if chunk["type"] == "audio":
                audio_data += chunk["data"]

        return audio_data

    def purge_expired(self, max_age_seconds: Optional[float] = None) -> int:
        """Delete generated audio older than the retention window. Returns the count."""
        if max_age_seconds is None:
            max_age_seconds = settings.AUDIO_RETENTION_MINUTES * 60

        if not self.audio_dir.is_dir():
            return 0

        now = time.time()
        removed = 0

        for path in self.audio_dir.iterdir():
            if not path.is_file():
                continue
            try:
                if now - path.stat().st_mtime > max_age_seconds:
                    path.unlink()
                    removed += 1
            except OSError as e:
                logger.warning(f"Could not remove old audio file {path.name}: {e}")

        if removed:
            logger.info(f"Cleaned up {removed} old audio files")
        return removed

    async def _cleanup_loop(self):
        """Periodically delete old audio files."""
        interval = settings.AUDIO_CLEANUP_INTERVAL_MINUTES * 60
        loop = asyncio.get_running_loop()

        while True:
            try:
                await asyncio.sleep(interval)
                await loop.run_in_executor(None, self.purge_expired)

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in audio cleanup: {e}")

    async def cleanup(self):
        """Cleanup resources."""
        if self._cleanup_task:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None
        logger.info("TTS service cleaned up")
