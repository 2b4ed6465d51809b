"""Generative-provider book resolution.

Every call ends in one of the tagged results from
:mod:`pageturner.domain.results`; nothing raised by the provider or by
parsing escapes this module.
"""

import asyncio
import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from pageturner.core.errors import BookParseError, ErrorCategory, categorize_error
from pageturner.domain.entities import SearchOptions, UserPreferences
from pageturner.domain.repositories import ILLMService
from pageturner.domain.results import EmptyResult, Ok, ParseError, ProviderError, ResolutionResult
from pageturner.infrastructure.llm.parsing import parse_books
from pageturner.infrastructure.llm.prompts import BOOK_RECOMMENDATION_PROMPT, describe_criteria
from pageturner.services.search_cache import SearchCache

logger = logging.getLogger(__name__)


class AIResolver:

    def __init__(
        self,
        llm_service: ILLMService,
        cache: Optional[SearchCache] = None,
        *,
        max_tokens: int = 2048,
        temperature: float = 0.7,
        timeout: float = 30.0,
    ):
        self.llm_service = llm_service
        self.cache = cache
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout = timeout

    async def resolve(
        self,
        query: str,
        options: Optional[SearchOptions] = None,
        preferences: Optional[UserPreferences] = None,
        *,
        use_cache: bool = True,
    ) -> ResolutionResult:
        """Cache first, then the provider; successful provider results are cached."""
        options = options or SearchOptions()
        if self.cache and use_cache:
            cached = await self.cache.get(query, options)
            if cached:
                logger.info("Search cache hit for %r", query)
                return Ok(cached, from_cache=True)

        messages = BOOK_RECOMMENDATION_PROMPT.render(
            criteria=describe_criteria(query, options, preferences)
        )
        result = await self.complete_books(messages)
        if isinstance(result, Ok) and self.cache:
            try:
                await self.cache.put(query, options, result.books)
            except SQLAlchemyError as exc:
                logger.warning("Could not cache results for %r: %s", query, exc)
        return result

    async def complete_books(self, messages: list[dict[str, str]]) -> ResolutionResult:
        """Run one provider call and parse its output into books."""
        try:
            raw = await asyncio.wait_for(
                self.llm_service.complete(
                    messages, max_tokens=self.max_tokens, temperature=self.temperature
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Provider call timed out after %.1fs", self.timeout)
            return ProviderError(ErrorCategory.NETWORK, "Request timeout", code="network/timeout")
        except Exception as exc:
            error = categorize_error(exc)
            logger.warning("Provider call failed [%s]: %s", error.code, exc)
            return ProviderError(error.category, error.message, code=error.code)

        try:
            books = parse_books(raw)
        except BookParseError as exc:
            logger.warning("Unparseable provider output (%d chars)", len(raw or ""))
            return ParseError(exc.message, raw=raw or "")
        if not books:
            return EmptyResult()
        return Ok(books)
