"""Route modules."""

from xelochat.api.routes import conversation, health, voice

__all__ = ["conversation", "health", "voice"]
