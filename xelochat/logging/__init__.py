"""Logging module initialization."""

from xelochat.logging.conversation_logger import ConversationLogger

__all__ = ["ConversationLogger"]
