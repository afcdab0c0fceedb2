"""Services module initialization."""

from xelochat.services.stt import STTService
from xelochat.services.tts import TTSService
from xelochat.services.llm import LLMService

__all__ = [
    "STTService",
    "TTSService",
    "LLMService"
]
