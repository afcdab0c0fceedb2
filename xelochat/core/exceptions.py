"""
Core exceptions for xelochat.
Custom exception classes for structured error handling.
"""

from typing import Optional, Dict, Any


class XeloChatException(Exception):
    """Base exception for xelochat errors."""

    def __init__(
        self,
        message: str,
        error_code: str = "XELOCHAT_ERROR",
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


# =========================
# STT Exceptions
# =========================

class STTException(XeloChatException):
    """Base exception for transcription errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="STT_ERROR",
            status_code=500,
            details=details
        )


class STTTimeoutException(STTException):
    """Raised when transcription times out."""

    def __init__(self, timeout_seconds: float):
        super().__init__(
            message=f"Transcription timed out after {timeout_seconds} seconds",
            details={"timeout_seconds": timeout_seconds}
        )


class STTNoAudioException(STTException):
    """Raised when the audio payload is too short to transcribe."""

    def __init__(self, size_bytes: int = 0):
        super().__init__(
            message="No audio detected in input",
            details={"error_type": "no_audio", "size_bytes": size_bytes}
        )
        self.status_code = 400


# =========================
# LLM Exceptions
# =========================

class LLMException(XeloChatException):
    """Base exception for LLM errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="LLM_ERROR",
            status_code=500,
            details=details
        )


class LLMAPIException(LLMException):
    """Raised when the provider API returns an error."""

    def __init__(self, api_error: str, status_code: int = 500):
        super().__init__(
            message=f"LLM API error: {api_error}",
            details={"api_error": api_error, "api_status_code": status_code}
        )


class LLMTimeoutException(LLMException):
    """Raised when LLM processing times out."""

    def __init__(self, timeout_seconds: float):
        super().__init__(
            message=f"LLM processing timed out after {timeout_seconds} seconds",
            details={"timeout_seconds": timeout_seconds}
        )


class LLMRateLimitException(LLMException):
    """Raised when LLM API rate limit is exceeded."""

    def __init__(self, retry_after: Optional[float] = None):
        super().__init__(
            message="LLM API rate limit exceeded",
            details={"retry_after_seconds": retry_after}
        )


class ModelNotFoundException(LLMException):
    """Raised when a request names a model outside the catalog."""

    def __init__(self, model_id: str, available: list):
        super().__init__(
            message=f"Model '{model_id}' not found",
            details={"model_id": model_id, "available_models": available}
        )
        self.status_code = 400


# =========================
# Recognition Exceptions
# =========================

class RecognitionException(XeloChatException):
    """Base exception for speech recognition errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="RECOGNITION_ERROR",
            status_code=400,
            details=details
        )


class RecognitionUnavailableException(RecognitionException):
    """Raised when no speech recognition facility is available."""

    def __init__(self):
        super().__init__(
            message="Speech recognition is not supported in this browser",
            details={"error_type": "unavailable"}
        )


class RecognitionRuntimeException(RecognitionException):
    """Raised when the recognizer fails mid-session."""

    def __init__(self, reason: str):
        super().__init__(
            message=f"Speech recognition error: {reason}",
            details={"reason": reason}
        )


# =========================
# Playback Exceptions
# =========================

class PlaybackException(XeloChatException):
    """Raised when a reply could not be played back."""

    def __init__(self, reason: str):
        super().__init__(
            message=f"Audio playback failed: {reason}",
            error_code="PLAYBACK_ERROR",
            status_code=500,
            details={"reason": reason}
        )


# =========================
# Session Exceptions
# =========================

class SessionException(XeloChatException):
    """Base exception for session errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="SESSION_ERROR",
            status_code=400,
            details=details
        )


class SessionNotFoundException(SessionException):
    """Raised when session is not found."""

    def __init__(self, session_id: str):
        super().__init__(
            message=f"Session '{session_id}' not found",
            details={"session_id": session_id}
        )
        self.status_code = 404


# =========================
# Pipeline Exceptions
# =========================

class PipelineException(XeloChatException):
    """Base exception for pipeline errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="PIPELINE_ERROR",
            status_code=500,
            details=details
        )


class PipelineStageException(PipelineException):
    """Raised when a pipeline stage fails."""

    def __init__(self, stage: str, error: str):
        super().__init__(
            message=f"Pipeline stage '{stage}' failed: {error}",
            details={"stage": stage, "error": error}
        )


class PipelineTimeoutException(PipelineException):
    """Raised when a whole reply takes longer than allowed."""

    def __init__(self, timeout_seconds: float):
        super().__init__(
            message=f"Response timed out after {timeout_seconds} seconds",
            details={"timeout_seconds": timeout_seconds}
        )
