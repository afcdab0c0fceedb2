"""
System prompt assembly for the consultant persona.
"""

from typing import Dict, List, Optional, Sequence

from xelochat.knowledge.base import KnowledgeEntry
from xelochat.knowledge.corpus import ConsultantProfile


def build_system_prompt(
    profile: ConsultantProfile,
    relevant_knowledge: Optional[Sequence[KnowledgeEntry]] = None
) -> str:
    """Build the consultant system prompt, appending any retrieved entries."""
    expertise = "\n".join(f"- {item}" for item in profile.expertise)
    services = "\n".join(f"- {item}" for item in profile.services)

    prompt = f"""You are {profile.name}, a {profile.title}.

About me:
{profile.bio}

My expertise areas:
{expertise}

My services:
{services}

{profile.availability}

Conversation guidelines:
- Be professional but friendly and conversational
- Draw from your expertise and experience
- Provide actionable advice and insights
- Keep responses concise (2-3 sentences) for voice conversation
- If asked about services or expertise, reference your background
- Be honest about limitations and suggest further support when needed"""

    if relevant_knowledge:
        prompt += "\n\nRelevant context from your knowledge base:\n"
        for entry in relevant_knowledge:
            prompt += f"\n[{entry.title}]\n{entry.content}\n"

    return prompt


def build_messages(
    system_prompt: str,
    history: Sequence[Dict[str, str]],
    user_message: str,
    window: int
) -> List[Dict[str, str]]:
    """Build LLM messages: system prompt, the last `window` history turns, then the user."""
    messages = [{"role": "system", "content": system_prompt}]

    recent = list(history)[-window:] if window > 0 else []
    for turn in recent:
        if turn.get("role") in ("user", "assistant") and turn.get("content"):
            messages.append({"role": turn["role"], "content": turn["content"]})

    messages.append({"role": "user", "content": user_message})
    return messages
