"""
Session Management for xelochat.
Keeps per-client chat history with expiry and a session cap.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional, Dict, Any, List
from uuid import uuid4
import logging

from xelochat.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


@dataclass
class ConversationTurn:
    """Single turn in conversation."""
    role: str  # "user" or "assistant"
    content: str
    timestamp: datetime = field(default_factory=datetime.now)
    model_id: Optional[str] = None

    # Retrieval metadata
    knowledge_ids: List[str] = field(default_factory=list)

    # Timing metadata
    processing_time_ms: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert turn to dictionary."""
        return {
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
            "model_id": self.model_id,
            "knowledge_ids": self.knowledge_ids,
            "processing_time_ms": self.processing_time_ms
        }

    def to_llm_message(self) -> Dict[str, str]:
        """Convert to LLM message format."""
        return {"role": self.role, "content": self.content}


@dataclass
class ChatSession:
    """
    Client session containing conversation history.
    """
    session_id: str
    created_at: datetime = field(default_factory=datetime.now)
    last_activity: datetime = field(default_factory=datetime.now)
    model_id: str = field(default_factory=lambda: settings.DEFAULT_MODEL_ID)

    turns: List[ConversationTurn] = field(default_factory=list)
    turn_count: int = 0

    def add_turn(self, turn: ConversationTurn):
        """Add a conversation turn."""
        self.turns.append(turn)
        self.turn_count += 1
        self.last_activity = datetime.now()

        # Trim old turns if exceeding max
        max_turns = settings.MAX_CONVERSATION_TURNS
        if len(self.turns) > max_turns:
            self.turns = self.turns[-max_turns:]

    def get_recent_turns(self, n: Optional[int] = None) -> List[ConversationTurn]:
        """Get the n most recent turns."""
        if n is None:
            n = settings.CONTEXT_WINDOW_SIZE
        return self.turns[-n:] if n > 0 else []

    def get_llm_messages(self, n: Optional[int] = None) -> List[Dict[str, str]]:
        """Get turns formatted for LLM input."""
        return [turn.to_llm_message() for turn in self.get_recent_turns(n)]

    def is_expired(self) -> bool:
        """Check if session has expired due to inactivity."""
        timeout = timedelta(minutes=settings.SESSION_TIMEOUT_MINUTES)
        return datetime.now() - self.last_activity > timeout

    def to_dict(self) -> Dict[str, Any]:
        """Convert session to dictionary."""
        return {
            "session_id": self.session_id,
            "created_at": self.created_at.isoformat(),
            "last_activity": self.last_activity.isoformat(),
            "model_id": self.model_id,
            "turn_count": self.turn_count,
            "turns": [turn.to_dict() for turn in self.turns]
        }


class SessionManager:
    """
    Manages chat sessions with automatic cleanup.
    Session storage is guarded by an asyncio lock.
    """

    def __init__(self, max_sessions: Optional[int] = None):
        self._sessions: Dict[str, ChatSession] = {}
        self._lock = asyncio.Lock()
        self._cleanup_task: Optional[asyncio.Task] = None
        self._max_sessions = max_sessions or settings.MAX_SESSIONS

    def __len__(self) -> int:
        return len(self._sessions)

    async def start(self):
        """Start the periodic cleanup task."""
        self._cleanup_task = asyncio.create_task(self._cleanup_loop())
        logger.info("Session manager started")

    async def stop(self):
        """Stop the session manager."""
        if self._cleanup_task:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None
        logger.info("Session manager stopped")

    async def create_session(self, session_id: Optional[str] = None) -> ChatSession:
        """Create a new session."""
        async with self._lock:
            if len(self._sessions) >= self._max_sessions:
                self._evict_oldest()

            session_id = session_id or str(uuid4())
            session = ChatSession(session_id=session_id)
            self._sessions[session_id] = session

            logger.info(f"Created new session: {session_id}")
            return session

    async def get_session(self, session_id: str) -> Optional[ChatSession]:
        """Get an existing, unexpired session."""
        async with self._lock:
            session = self._sessions.get(session_id)

            if session and session.is_expired():
                self._remove_session(session_id)
                return None

            return session

    async def get_or_create_session(self, session_id: Optional[str] = None) -> ChatSession:
        """Get existing session or create new one."""
        if session_id:
            session = await self.get_session(session_id)
            if session:
                return session

        return await self.create_session(session_id)

    async def touch(self, session: ChatSession):
        """Mark a session as active."""
        async with self._lock:
            session.last_activity = datetime.now()
            self._sessions[session.session_id] = session

    async def delete_session(self, session_id: str) -> bool:
        """Delete a session. Returns False when it did not exist."""
        async with self._lock:
            return self._remove_session(session_id)

    async def purge_expired(self) -> int:
        """Remove expired sessions and return how many were removed."""
        async with self._lock:
            expired = [
                sid for sid, session in self._sessions.items()
                if session.is_expired()
            ]
            for sid in expired:
                self._remove_session(sid)
            return len(expired)

    def _remove_session(self, session_id: str) -> bool:
        """Remove session (must be called with lock held)."""
        if session_id in self._sessions:
            del self._sessions[session_id]
            logger.info(f"Removed session: {session_id}")
            return True
        return False

    def _evict_oldest(self):
        """Evict least recently active session (must be called with lock held)."""
        if not self._sessions:
            return

        oldest_session = min(
            self._sessions.values(),
            key=lambda s: s.last_activity
        )
        self._remove_session(oldest_session.session_id)

    async def _cleanup_loop(self):
        """Periodically clean up expired sessions."""
        while True:
            try:
                await asyncio.sleep(60)

                removed = await self.purge_expired()
                if removed:
                    logger.info(f"Cleaned up {removed} expired sessions")

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in session cleanup: {e}")
