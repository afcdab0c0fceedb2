"""
xelochat - Voice AI Consultant
==============================
A voice chat backend where users talk to an AI consultant persona.

Features:
- Wake-word gated, silence-terminated voice sessions
- Push-to-talk fallback with server-side transcription
- Keyword-scored retrieval over the consultant's knowledge base
- Selectable chat models with a mock test mode

Tech Stack:
- FastAPI (async backend)
- Groq API (LLM and Whisper STT)
- edge-tts (TTS)
"""

__version__ = "1.0.0"
