"""
Health Check Endpoints.
System health and readiness checks.
"""

from datetime import datetime
from fastapi import APIRouter, Request

from xelochat.config import get_settings

router = APIRouter()
settings = get_settings()


@router.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "version": settings.APP_VERSION
    }


@router.get("/health/ready")
async def readiness_check(request: Request):
    """
    Readiness check - verifies all services are in place.
    Provider modes are reported separately; mock mode still counts as ready.
    """
    state = request.app.state

    checks = {
        "stt_service": hasattr(state, "stt_service"),
        "tts_service": hasattr(state, "tts_service"),
        "llm_service": hasattr(state, "llm_service"),
        "knowledge_base": hasattr(state, "knowledge_base") and len(state.knowledge_base) > 0,
        "session_manager": hasattr(state, "session_manager")
    }

    modes = {}
    if checks["llm_service"]:
        modes["llm"] = "groq" if state.llm_service.is_initialized else "mock"
    if checks["stt_service"]:
        modes["stt"] = "groq" if state.stt_service.is_initialized else "mock"
    if checks["tts_service"]:
        modes["tts"] = "edge-tts" if state.tts_service.enabled else "browser"

    all_ready = all(checks.values())

    return {
        "status": "ready" if all_ready else "not_ready",
        "checks": checks,
        "modes": modes,
        "timestamp": datetime.utcnow().isoformat()
    }


@router.get("/health/live")
async def liveness_check():
    """
    Liveness check - just verifies the server is responding.
    """
    return {
        "status": "alive",
        "timestamp": datetime.utcnow().isoformat()
    }
