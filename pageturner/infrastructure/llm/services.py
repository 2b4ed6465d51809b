"""LLM service implementations.

Each provider exposes one operation, :meth:`ILLMService.complete`, taking an
OpenAI-style messages list rendered from
``pageturner.infrastructure.llm.prompts``.  Providers raise on failure; the
resolvers fold the exception into the error taxonomy and fall back.
"""

import hashlib
import json
import logging
from typing import Optional

import httpx
import openai

from pageturner.core.config import Settings
from pageturner.core.http import fetch_with_retry
from pageturner.domain.repositories import ILLMService

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Mock (development / testing)
# ---------------------------------------------------------------------------
_MOCK_CATALOGUE = [
    {
        "title": "The Hobbit",
        "author": "J.R.R. Tolkien",
        "publicationDate": "1937",
        "rating": 4.7,
        "reviewCount": 9120,
        "description": "Bilbo Baggins is swept into a quest to reclaim a dragon's hoard.",
        "genres": ["Fantasy", "Adventure"],
        "pageCount": 310,
    },
    {
        "title": "Good Omens",
        "author": "Terry Pratchett",
        "publicationDate": "1990",
        "rating": 4.5,
        "reviewCount": 6310,
        "description": "An angel and a demon team up to prevent the apocalypse.",
        "genres": ["Fantasy", "Comedy"],
        "pageCount": 412,
    },
    {
        "title": "Project Hail Mary",
        "author": "Andy Weir",
        "publicationDate": "2021",
        "rating": 4.6,
        "reviewCount": 5480,
        "description": "A lone astronaut must save Earth with the help of an unlikely friend.",
        "genres": ["Science Fiction"],
        "pageCount": 496,
    },
    {
        "title": "The House in the Cerulean Sea",
        "author": "TJ Klune",
        "publicationDate": "2020",
        "rating": 4.4,
        "reviewCount": 4022,
        "description": "A caseworker visits an orphanage for magical children.",
        "genres": ["Fantasy", "Fiction"],
        "pageCount": 398,
    },
    {
        "title": "A Man Called Ove",
        "author": "Fredrik Backman",
        "publicationDate": "2012",
        "rating": 4.4,
        "reviewCount": 7015,
        "description": "A grumpy widower's life is upended by his new neighbours.",
        "genres": ["Fiction"],
        "pageCount": 337,
    },
    {
        "title": "Circe",
        "author": "Madeline Miller",
        "publicationDate": "2018",
        "rating": 4.3,
        "reviewCount": 5870,
        "description": "The witch of Aiaia tells her own story.",
        "genres": ["Fantasy", "Historical Fiction"],
        "pageCount": 393,
    },
]


class MockLLMService(ILLMService):
    """Returns deterministic JSON recommendations, useful for tests and offline dev."""

    async def complete(
        self, messages: list[dict[str, str]], *, max_tokens: int, temperature: float
    ) -> str:
        prompt = "\n".join(m["content"] for m in messages)
        logger.debug("MockLLM prompt (%d chars)", len(prompt))
        # Rotate the catalogue by a prompt hash so different queries differ
        offset = int(hashlib.md5(prompt.encode()).hexdigest(), 16) % len(_MOCK_CATALOGUE)
        books = _MOCK_CATALOGUE[offset:] + _MOCK_CATALOGUE[:offset]
        return json.dumps(books[:5])


# ---------------------------------------------------------------------------
# Llama 3 (local / Ollama)
# ---------------------------------------------------------------------------
class LlamaLLMService(ILLMService):
    """Local LLM service backed by `Ollama <https://ollama.com>`_.

    Talks to ``POST /api/chat`` through :func:`fetch_with_retry`, so
    connection failures are retried with backoff and a timeout ends the
    call at once.

    Constructor args:
        base_url:  Ollama server URL (default ``http://localhost:11434``).
        model:     Model tag pulled into Ollama (default ``llama3``).
        timeout:   Per-request timeout in seconds (default 30).
        retries:   Retries after a connection failure (default 3).
        client:    Shared ``httpx.AsyncClient``; a fresh one per call when omitted.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = "llama3",
        timeout: float = 30.0,
        retries: int = 3,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self.retries = retries
        self.client = client

    async def complete(
        self, messages: list[dict[str, str]], *, max_tokens: int, temperature: float
    ) -> str:
        payload = {
            "model": self.model,
            "messages": messages,
            "stream": False,
            "options": {"temperature": temperature, "num_predict": max_tokens},
        }
        logger.info("LlamaLLM: requesting completion from %s (model=%s)", self.base_url, self.model)
        resp = await fetch_with_retry(
            "POST",
            f"{self.base_url}/api/chat",
            json=payload,
            retries=self.retries,
            timeout=self.timeout,
            client=self.client,
        )
        if not resp.ok:
            raise resp.error
        return (resp.data or {}).get("message", {}).get("content", "")


# ---------------------------------------------------------------------------
# OpenAI (remote API)
# ---------------------------------------------------------------------------
class OpenAILLMService(ILLMService):
    """OpenAI-backed LLM provider.

    Requires ``LLM_API_KEY`` in env.  SDK calls are not retried here.
    """

    def __init__(self, api_key: str, model: str = "gpt-4", timeout: float = 30.0):
        self.model = model
        self._client = openai.AsyncOpenAI(api_key=api_key, timeout=timeout, max_retries=0)

    async def complete(
        self, messages: list[dict[str, str]], *, max_tokens: int, temperature: float
    ) -> str:
        response = await self._client.chat.completions.create(
            model=self.model,
            messages=messages,  # type: ignore[arg-type]
            temperature=temperature,
            max_tokens=max_tokens,
        )
        return response.choices[0].message.content or ""


def build_llm_service(settings: Settings) -> ILLMService:
    """Return the configured LLM provider."""
    if settings.llm_provider == "mock":
        return MockLLMService()
    elif settings.llm_provider == "llama":
        return LlamaLLMService(
            base_url=settings.llm_base_url,
            model=settings.llm_model,
            timeout=settings.llm_timeout_seconds,
            retries=settings.http_retry_attempts,
        )
    elif settings.llm_provider == "openai":
        return OpenAILLMService(
            api_key=settings.llm_api_key,
            model=settings.llm_model,
            timeout=settings.llm_timeout_seconds,
        )
    raise ValueError(f"Unknown LLM provider: {settings.llm_provider}")
