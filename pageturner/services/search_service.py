"""Search resolution: route a query, resolve it, degrade to popular books.

    route ── POPULAR ─────────────────────────────┐
          ├─ KEYWORD ── keyword lookup ─ empty? ─┤
          └─ AI ─ cache ─ provider ─ not Ok? ────┴─> popular books ─> static list

Every failure below the route handler ends in the popular list, so callers
always get a result.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError

from pageturner.core.errors import categorize_error
from pageturner.domain.entities import Book, HistoryEntry, SearchOptions, User
from pageturner.domain.repositories import (
    IBookRepository,
    IHistoryRepository,
    ISearchStatsRepository,
    IUserPreferenceRepository,
)
from pageturner.domain.results import EmptyResult, Ok, ParseError, ProviderError
from pageturner.services.ai_resolver import AIResolver
from pageturner.services.fallback import FallbackProvider
from pageturner.services.keyword_resolver import KeywordResolver
from pageturner.services.search_cache import normalize_query

logger = logging.getLogger(__name__)


class Route(str, Enum):
    POPULAR = "popular"
    KEYWORD = "keyword"
    AI = "ai"


class QueryRouter:
    """Short unfiltered queries go to the title index; everything else to the provider."""

    def __init__(self, min_search_length: int = 3):
        self.min_search_length = min_search_length

    def route(self, query: str, options: Optional[SearchOptions] = None) -> Route:
        text = (query or "").strip()
        if not text:
            return Route.POPULAR
        if len(text) <= self.min_search_length and not (options and options.has_filters()):
            return Route.KEYWORD
        return Route.AI


@dataclass
class SearchOutcome:
    books: list[Book]
    source: str  # keyword | cache | ai | popular | fallback
    query: str
    options: dict = field(default_factory=dict)


class SearchService:

    def __init__(
        self,
        router: QueryRouter,
        keyword_resolver: KeywordResolver,
        ai_resolver: AIResolver,
        fallback: FallbackProvider,
        book_repository: IBookRepository,
        stats_repository: ISearchStatsRepository,
        history_repository: IHistoryRepository,
        preference_repository: IUserPreferenceRepository,
        *,
        persist_ai_books: bool = True,
        max_results: int = 20,
    ):
        self.router = router
        self.keyword_resolver = keyword_resolver
        self.ai_resolver = ai_resolver
        self.fallback = fallback
        self.book_repository = book_repository
        self.stats_repository = stats_repository
        self.history_repository = history_repository
        self.preference_repository = preference_repository
        self.persist_ai_books = persist_ai_books
        self.max_results = max_results

    async def search(
        self,
        query: str,
        options: Optional[SearchOptions] = None,
        user: Optional[User] = None,
        *,
        regenerate: bool = False,
    ) -> SearchOutcome:
        text = (query or "").strip()
        options = options or SearchOptions()
        route = self.router.route(text, options)
        logger.info("Search %r %s routed to %s", text, options.as_dict(), route.value)

        if route is Route.POPULAR:
            return await self._popular(text, options)

        try:
            await self.stats_repository.record(normalize_query(text), user.id if user else None)
            if route is Route.KEYWORD:
                page = await self.keyword_resolver.resolve(
                    text, options, page_size=self.max_results
                )
                if page.items:
                    return SearchOutcome(page.items, "keyword", text, options.as_dict())
                logger.info("No title matches for %r; serving popular books", text)
                return await self._popular(text, options)

            preferences = (
                await self.preference_repository.get(user.id) if user else None
            )
            result = await self.ai_resolver.resolve(
                text, options, preferences, use_cache=not regenerate
            )
        except Exception as exc:
            error = categorize_error(exc)
            logger.warning("Search %r failed [%s]: %s", text, error.code, exc)
            return await self._popular(text, options)

        match result:
            case Ok(books=books, from_cache=True):
                outcome = SearchOutcome(books, "cache", text, options.as_dict())
            case Ok(books=books):
                books = await self._persist(books, text)
                outcome = SearchOutcome(books, "ai", text, options.as_dict())
            case ParseError(message=message) | EmptyResult(reason=message):
                logger.warning("AI search %r gave no books: %s", text, message)
                return await self._popular(text, options)
            case ProviderError(category=category, message=message):
                logger.warning("AI search %r provider error (%s): %s", text, category.value, message)
                return await self._popular(text, options)

        if user:
            await self._record_history(user, text, options, outcome.books)
        return outcome

    async def _popular(self, text: str, options: SearchOptions) -> SearchOutcome:
        books, from_store = await self.fallback.popular()
        return SearchOutcome(books, "popular" if from_store else "fallback", text, options.as_dict())

    async def _persist(self, books: list[Book], text: str) -> list[Book]:
        if not self.persist_ai_books:
            return books
        query = normalize_query(text)
        try:
            return [await self.book_repository.upsert_generated(b, query) for b in books]
        except SQLAlchemyError as exc:
            logger.warning("Could not store generated books for %r: %s", text, exc)
            return books

    async def _record_history(
        self, user: User, text: str, options: SearchOptions, books: list[Book]
    ) -> None:
        try:
            await self.history_repository.record(
                HistoryEntry(
                    id=uuid4(),
                    user_id=user.id,
                    action="search",
                    query=text,
                    options=options.as_dict(),
                    book_ids=[b.id for b in books],
                )
            )
        except SQLAlchemyError as exc:
            logger.warning("Could not record search history for %s: %s", user.id, exc)
