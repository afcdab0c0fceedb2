"""Knowledge module initialization."""

from xelochat.knowledge.base import KnowledgeBase, KnowledgeEntry, tokenize_query, score_entry
from xelochat.knowledge.corpus import (
    CONSULTANT_PROFILE,
    KNOWLEDGE_ENTRIES,
    ConsultantProfile,
    load_default_knowledge_base
)
from xelochat.knowledge.prompt import build_system_prompt, build_messages

__all__ = [
    "KnowledgeBase",
    "KnowledgeEntry",
    "tokenize_query",
    "score_entry",
    "CONSULTANT_PROFILE",
    "KNOWLEDGE_ENTRIES",
    "ConsultantProfile",
    "load_default_knowledge_base",
    "build_system_prompt",
    "build_messages"
]
