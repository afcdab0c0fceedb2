"""
LLM Service using Groq API.
Serves the consultant's replies, with a keyword-matched mock model for
development and test mode.
"""

import asyncio
import logging
import random
import time
from dataclasses import dataclass, asdict
from typing import Optional, List, Dict, Any

from groq import AsyncGroq, APIError, APIStatusError, RateLimitError

from xelochat.config import get_settings
from xelochat.core.exceptions import (
    LLMAPIException,
    LLMTimeoutException,
    LLMRateLimitException,
    ModelNotFoundException
)

logger = logging.getLogger(__name__)
settings = get_settings()


MOCK_MODEL_ID = "mock"


@dataclass(frozen=True)
class ModelInfo:
    """Selectable chat model."""
    id: str
    name: str
    provider: str  # "groq" or "local"
    description: str
    model_name: str
    requires_setup: bool

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


MODEL_CATALOG: List[ModelInfo] = [
    ModelInfo(
        id="groq-llama-3.1-8b",
        name="LLaMA 3.1 8B - Groq",
        provider="groq",
        description="Fast replies for voice conversation. Needs GROQ_API_KEY.",
        model_name="llama-3.1-8b-instant",
        requires_setup=True
    ),
    ModelInfo(
        id="groq-llama-3.3-70b",
        name="LLaMA 3.3 70B - Groq",
        provider="groq",
        description="Stronger reasoning, slightly slower. Needs GROQ_API_KEY.",
        model_name="llama-3.3-70b-versatile",
        requires_setup=True
    ),
    ModelInfo(
        id=MOCK_MODEL_ID,
        name="Mock Responses - Test Mode",
        provider="local",
        description="Sample responses. Works without any AI setup.",
        model_name="mock",
        requires_setup=False
    ),
]


def get_model(model_id: str) -> ModelInfo:
    """Look up a catalog entry, raising ModelNotFoundException for unknown ids."""
    for model in MODEL_CATALOG:
        if model.id == model_id:
            return model
    raise ModelNotFoundException(model_id, [m.id for m in MODEL_CATALOG])


# Keyword groups are checked in order; the first group with a hit wins
MOCK_RESPONSES = [
    (
        ("hello", "hi", "hey", "greetings"),
        "Hello! That's an interesting question. Let me get more information from our resources to give you the best answer."
    ),
    (
        ("digital transformation", "modernize", "legacy"),
        "That's an interesting question. Let me get more info from web and our expertise database. Digital transformation is crucial for modern businesses."
    ),
    (
        ("ai", "machine learning", "ml", "neural"),
        "That's an interesting question. Let me search our knowledge base and recent industry data. AI and machine learning are transformative technologies."
    ),
    (
        ("cloud", "aws", "azure", "gcp", "migration"),
        "That's an interesting question. Let me get more details from our cloud architecture database. Cloud infrastructure is essential today."
    ),
    (
        ("strategy", "business", "growth", "scaling"),
        "That's an interesting question. Let me analyze that with our strategic insights. Building a scalable business strategy is critical."
    ),
    (
        ("cost", "pricing", "rate", "fee", "budget"),
        "That's an interesting question. Let me get the current information. Our engagement models are flexible and tailored to your needs."
    ),
    (
        ("project", "case study", "portfolio", "experience"),
        "That's an interesting question. Let me pull up our case study library. We have extensive experience across multiple industries."
    ),
    (
        ("timeline", "duration", "how long", "when"),
        "That's an interesting question. Let me gather the relevant details. Project timelines vary based on scope and complexity."
    ),
    (
        ("team", "process", "method", "approach"),
        "That's an interesting question. Let me share our methodology and team structure details from our documentation."
    ),
    (
        ("contact", "reach", "connect", "email", "phone"),
        "That's an interesting question. Let me get our contact information for you. We're available through multiple channels."
    ),
]

MOCK_FALLBACK_RESPONSES = [
    "That's an interesting question. Let me get more information from our resources.",
    "That's a great inquiry. Let me search through our knowledge base for relevant details.",
    "That's something I should research more thoroughly. Let me get the latest information.",
    "That's a thoughtful question. Let me gather more data to give you the best answer.",
    "That's definitely worth exploring. Let me pull up the relevant information.",
]


def mock_response(user_message: str, rng: Optional[random.Random] = None) -> str:
    """Pick a canned reply by substring keyword match, or a random fallback."""
    message_lower = user_message.lower()

    for keywords, response in MOCK_RESPONSES:
        if any(keyword in message_lower for keyword in keywords):
            return response

    return (rng or random).choice(MOCK_FALLBACK_RESPONSES)


@dataclass
class LLMResponse:
    """Response from LLM completion."""
    content: str
    model_id: str
    finish_reason: Optional[str] = None
    usage: Optional[Dict[str, int]] = None
    processing_time_ms: Optional[float] = None
    is_mock: bool = False


class LLMService:
    """
    LLM service using Groq API for low latency inference.

    Without GROQ_API_KEY the client is never created and every model is
    served by the mock responder.
    """

    def __init__(self, api_key: Optional[str] = None):
        self._api_key = api_key if api_key is not None else settings.GROQ_API_KEY
        self._client: Optional[AsyncGroq] = None
        self._is_initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._is_initialized

    async def initialize(self):
        """Initialize Groq client."""
        if not self._api_key:
            logger.warning("GROQ_API_KEY not set, using mock LLM")
            self._is_initialized = False
            return

        try:
            logger.info("Initializing LLM service...")
            self._client = AsyncGroq(api_key=self._api_key)
            self._is_initialized = True
            logger.info("LLM service initialized")

        except Exception as e:
            logger.error(f"Failed to initialize LLM service: {e}")
            self._is_initialized = False

    def list_models(self) -> List[Dict[str, Any]]:
        """Catalog entries with their current availability."""
        models = []
        for model in MODEL_CATALOG:
            entry = model.to_dict()
            entry["available"] = model.provider == "local" or self._is_initialized
            models.append(entry)
        return models

    async def complete(
        self,
        messages: List[Dict[str, str]],
        model_id: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None
    ) -> LLMResponse:
        """
        Generate a complete response.

        Args:
            messages: Conversation messages, system prompt first
            model_id: Catalog id; defaults to DEFAULT_MODEL_ID
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate

        Returns:
            LLMResponse with the reply text
        """
        model = get_model(model_id or settings.DEFAULT_MODEL_ID)

        if model.provider == "local":
            return self._mock_complete(messages, model.id)

        if not self._is_initialized:
            logger.warning(f"Model {model.id} requested without GROQ_API_KEY, falling back to mock")
            return self._mock_complete(messages, model.id)

        start_time = time.time()

        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=model.model_name,
                    messages=messages,
                    temperature=settings.LLM_TEMPERATURE if temperature is None else temperature,
                    max_tokens=settings.LLM_MAX_TOKENS if max_tokens is None else max_tokens
                ),
                timeout=settings.LLM_TIMEOUT_SECONDS
            )
        except asyncio.TimeoutError:
            raise LLMTimeoutException(settings.LLM_TIMEOUT_SECONDS)
        except RateLimitError:
            raise LLMRateLimitException()
        except APIStatusError as e:
            raise LLMAPIException(str(e), e.status_code)
        except APIError as e:
            raise LLMAPIException(str(e))

        choice = response.choices[0]
        usage = None
        if response.usage is not None:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens
            }

        content = (choice.message.content or "").strip()
        if not content:
            raise LLMAPIException("Empty completion")

        return LLMResponse(
            content=content,
            model_id=model.id,
            finish_reason=choice.finish_reason,
            usage=usage,
            processing_time_ms=(time.time() - start_time) * 1000
        )

    def _mock_complete(self, messages: List[Dict[str, str]], model_id: str) -> LLMResponse:
        """Mock completion for development."""
        user_msg = ""
        for msg in reversed(messages):
            if msg["role"] == "user":
                user_msg = msg["content"]
                break

        return LLMResponse(
            content=mock_response(user_msg),
            model_id=model_id,
            finish_reason="stop",
            processing_time_ms=0.0,
            is_mock=True
        )

    async def cleanup(self):
        """Cleanup resources."""
        if self._client is not None:
            await self._client.close()
        self._client = None
        self._is_initialized = False
        logger.info("LLM service cleaned up")
