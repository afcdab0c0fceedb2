"""
Configuration management for xelochat.
Loads settings from environment variables with sensible defaults.
"""

from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings
from pydantic import Field
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # =========================
    # Application Settings
    # =========================
    APP_NAME: str = "xelochat"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = Field(default=False, description="Enable debug mode")
    ENVIRONMENT: str = Field(default="development", description="Environment name")

    # =========================
    # API Keys
    # =========================
    GROQ_API_KEY: Optional[str] = Field(
        default=None,
        description="Groq API key for chat and transcription. Without it the service runs in mock mode"
    )

    # =========================
    # Server Settings
    # =========================
    HOST: str = Field(default="0.0.0.0", description="Server host")
    PORT: int = Field(default=5000, description="Server port")

    # =========================
    # Model Settings
    # =========================
    DEFAULT_MODEL_ID: str = Field(default="mock", description="Model used when a request names none")
    STT_MODEL_ID: str = Field(default="whisper-large-v3", description="Groq transcription model")
    TTS_VOICE: str = Field(default="en-US-JennyNeural", description="edge-tts voice name")
    TTS_ENABLED: bool = Field(default=True, description="Synthesize server-side audio for replies")
    LLM_TEMPERATURE: float = Field(default=0.7, description="Sampling temperature")
    LLM_MAX_TOKENS: int = Field(default=200, description="Reply length cap, kept short for voice")

    # =========================
    # Voice Session Settings
    # =========================
    WAKE_WORD: str = Field(
        default="hey xelo",
        description="Trigger phrase gating each listening session. Empty disables the gate"
    )
    SILENCE_TIMEOUT_MS: int = Field(
        default=2000,
        description="Silence after which a capturing session stops on its own"
    )
    RECOGNITION_LANGUAGE: str = Field(default="en-US", description="Language requested from the recognizer")

    # =========================
    # Retrieval Settings
    # =========================
    KNOWLEDGE_SEARCH_LIMIT: int = Field(default=3, description="Knowledge entries injected per prompt")
    CONTEXT_WINDOW_SIZE: int = Field(default=4, description="Recent turns included in LLM context")

    # =========================
    # Latency Settings
    # =========================
    LLM_TIMEOUT_SECONDS: float = Field(default=15.0, description="LLM API timeout")
    STT_TIMEOUT_SECONDS: float = Field(default=20.0, description="Transcription timeout")
    TTS_TIMEOUT_SECONDS: float = Field(default=15.0, description="Speech synthesis timeout")
    RESPONSE_TIMEOUT_SECONDS: float = Field(
        default=45.0,
        description="Upper bound for a whole reply (retrieval, LLM and TTS)"
    )
    PLAYBACK_TIMEOUT_SECONDS: float = Field(
        default=120.0,
        description="Upper bound for the client to report playback completion"
    )

    # =========================
    # Session Settings
    # =========================
    SESSION_TIMEOUT_MINUTES: int = Field(default=30, description="Session idle timeout")
    MAX_SESSIONS: int = Field(default=100, description="Maximum concurrent sessions")
    MAX_CONVERSATION_TURNS: int = Field(default=20, description="Turns kept per session")

    # =========================
    # Audio File Settings
    # =========================
    AUDIO_DIR: Path = Field(default=Path("./uploads"), description="Directory for synthesized audio")
    AUDIO_RETENTION_MINUTES: int = Field(default=60, description="Age after which audio files are deleted")
    AUDIO_CLEANUP_INTERVAL_MINUTES: int = Field(default=30, description="How often old audio is purged")
    MIN_AUDIO_BYTES: int = Field(default=100, description="Shortest audio payload accepted for transcription")

    # =========================
    # Logging Settings
    # =========================
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    AGENT_LOG_PATH: Path = Field(
        default=Path("./logs/conversation_log.md"),
        description="Path to the markdown conversation log"
    )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Marker telling the client to speak the reply with its own synthesizer
BROWSER_TTS_HINT = "USE_BROWSER_TTS"

# Knowledge entry categories
KNOWLEDGE_CATEGORIES = [
    "expertise",
    "service",
    "case_study",
    "faq",
    "process"
]
