"""
FastAPI Application Entry Point
===============================
Main application with lifecycle management, middleware, and route mounting.
"""

from contextlib import asynccontextmanager
from datetime import datetime
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from xelochat.config import get_settings
from xelochat.core.exceptions import XeloChatException
from xelochat.core.pipeline import ChatPipeline
from xelochat.core.session import SessionManager
from xelochat.api.routes import voice, conversation, health
from xelochat.knowledge import load_default_knowledge_base
from xelochat.logging import ConversationLogger
from xelochat.services.stt import STTService
from xelochat.services.tts import TTSService, AUDIO_URL_PREFIX
from xelochat.services.llm import LLMService

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    logger.info("=" * 60)
    logger.info("Starting xelochat")
    logger.info("=" * 60)

    # ==================
    # STARTUP
    # ==================

    settings.AUDIO_DIR.mkdir(parents=True, exist_ok=True)

    logger.info("Initializing conversation logger...")
    app.state.conversation_logger = ConversationLogger(settings.AGENT_LOG_PATH)
    if not settings.AGENT_LOG_PATH.exists():
        await app.state.conversation_logger.initialize_log(settings.APP_VERSION)
    await app.state.conversation_logger.start()
    await app.state.conversation_logger.log_system_event("Application starting", {
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT
    })

    logger.info("Loading knowledge base...")
    app.state.knowledge_base = load_default_knowledge_base()

    logger.info("Initializing STT service...")
    app.state.stt_service = STTService()
    await app.state.stt_service.initialize()

    logger.info("Initializing TTS service...")
    app.state.tts_service = TTSService()
    await app.state.tts_service.initialize()

    logger.info("Initializing LLM service...")
    app.state.llm_service = LLMService()
    await app.state.llm_service.initialize()

    logger.info("Starting session manager...")
    app.state.session_manager = SessionManager()
    await app.state.session_manager.start()

    app.state.pipeline = ChatPipeline(
        knowledge_base=app.state.knowledge_base,
        llm_service=app.state.llm_service,
        tts_service=app.state.tts_service,
        stt_service=app.state.stt_service,
        conversation_logger=app.state.conversation_logger
    )

    logger.info("=" * 60)
    logger.info("xelochat ready!")
    logger.info(f"Server: http://{settings.HOST}:{settings.PORT}")
    logger.info(f"Docs: http://{settings.HOST}:{settings.PORT}/docs")
    logger.info("=" * 60)

    await app.state.conversation_logger.log_system_event("Application started successfully", {
        "host": settings.HOST,
        "port": settings.PORT,
        "knowledge_entries": len(app.state.knowledge_base),
        "default_model": settings.DEFAULT_MODEL_ID
    })

    yield  # Application runs here

    # ==================
    # SHUTDOWN
    # ==================

    logger.info("Shutting down xelochat...")

    await app.state.conversation_logger.log_system_event("Application shutting down", {})

    await app.state.session_manager.stop()
    await app.state.stt_service.cleanup()
    await app.state.tts_service.cleanup()
    await app.state.llm_service.cleanup()
    await app.state.conversation_logger.close()

    logger.info("Shutdown complete.")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="""
    ## Voice AI Consultant

    Talk to an AI technology and business consultant by voice or text.

    ### Features:
    - 🎤 Wake-word voice sessions over WebSocket
    - 📚 Answers grounded in the consultant's knowledge base
    - 🔄 Multi-turn sessions with history
    - 🧪 Mock model for testing without API keys

    ### Pipeline:
    ```
    Utterance → Knowledge Lookup → LLM (Groq) → TTS (edge-tts) → Playback
    ```
    """,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json"
)

# ==================
# MIDDLEWARE
# ==================

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_timing_header(request: Request, call_next):
    """Add request timing information to response headers."""
    start_time = datetime.now()
    response = await call_next(request)
    process_time = (datetime.now() - start_time).total_seconds() * 1000
    response.headers["X-Process-Time-Ms"] = f"{process_time:.2f}"
    logger.debug(f"{request.method} {request.url.path} -> {response.status_code} ({process_time:.0f}ms)")
    return response


# ==================
# EXCEPTION HANDLERS
# ==================

@app.exception_handler(XeloChatException)
async def xelochat_exception_handler(request: Request, exc: XeloChatException):
    """Handle custom xelochat exceptions."""
    logger.error(f"XeloChatException: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.error_code,
            "message": exc.message,
            "details": exc.details
        }
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "INTERNAL_ERROR",
            "message": "An unexpected error occurred",
            "details": str(exc) if settings.DEBUG else None
        }
    )


# ==================
# ROUTES
# ==================

app.include_router(health.router, tags=["Health"])
app.include_router(conversation.router, prefix="/api", tags=["Conversation"])
app.include_router(voice.router, prefix="/api/voice", tags=["Voice"])

# Synthesized replies
app.mount(AUDIO_URL_PREFIX, StaticFiles(directory=settings.AUDIO_DIR, check_dir=False), name="audio")


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "docs": "/docs",
        "health": "/health"
    }


def run():
    """Run the server with uvicorn."""
    import uvicorn

    uvicorn.run(
        "xelochat.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG
    )


if __name__ == "__main__":
    run()
