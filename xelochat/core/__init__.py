"""Core module initialization."""

from xelochat.core.exceptions import XeloChatException
from xelochat.core.timers import CancellableTimer, LoopScheduler
from xelochat.core.voice_input import ContinuousVoiceInput, PushToTalkInput, RecognitionSegment
from xelochat.core.conversation import ConversationState, InputMode, ResponsePayload, VoiceConversation
from xelochat.core.session import ChatSession, ConversationTurn, SessionManager

__all__ = [
    "XeloChatException",
    "CancellableTimer",
    "LoopScheduler",
    "ContinuousVoiceInput",
    "PushToTalkInput",
    "RecognitionSegment",
    "ConversationState",
    "InputMode",
    "ResponsePayload",
    "VoiceConversation",
    "ChatSession",
    "ConversationTurn",
    "SessionManager"
]
