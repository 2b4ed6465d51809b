"""Personalised and similar-book recommendations.

Home-page recommendations fall through three layers:

  1. ``personalized``     catalogue books in the user's favourite genres,
  2. ``ai_personalized``  provider suggestions from recent activity,
  3. ``popular``          the same popular list the search pipeline uses.

Similar books come from genre overlap in the catalogue, topped up by the
provider when the catalogue has fewer than half the wanted count, and are
cached per book in ``book_recommendations``.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from pageturner.core.constants import MAX_GENRE_FILTER_VALUES
from pageturner.core.errors import BookError
from pageturner.domain.entities import Book, SimilarBooksEntry, User
from pageturner.domain.repositories import (
    IBookRepository,
    IHistoryRepository,
    ISimilarBooksRepository,
    IUserPreferenceRepository,
)
from pageturner.domain.results import Ok
from pageturner.infrastructure.llm.prompts import render_history, render_similar
from pageturner.services.ai_resolver import AIResolver
from pageturner.services.fallback import FallbackProvider
from pageturner.services.search_cache import is_fresh

logger = logging.getLogger(__name__)

RECENT_HISTORY_LIMIT = 5


class RecommendationService:

    def __init__(
        self,
        book_repository: IBookRepository,
        preference_repository: IUserPreferenceRepository,
        history_repository: IHistoryRepository,
        similar_repository: ISimilarBooksRepository,
        ai_resolver: AIResolver,
        fallback: FallbackProvider,
        *,
        recommendation_count: int = 6,
        popular_limit: int = 12,
        cache_duration_seconds: int = 86400,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.book_repository = book_repository
        self.preference_repository = preference_repository
        self.history_repository = history_repository
        self.similar_repository = similar_repository
        self.ai_resolver = ai_resolver
        self.fallback = fallback
        self.recommendation_count = recommendation_count
        self.popular_limit = popular_limit
        self.cache_duration = timedelta(seconds=cache_duration_seconds)
        self.clock = clock

    # ------------------------------------------------------------------
    # Home-page recommendations
    # ------------------------------------------------------------------
    async def for_user(self, user: Optional[User]) -> tuple[list[Book], str]:
        """Return ``(books, source)`` for the signed-in user, or popular books."""
        if user:
            preferences = await self.preference_repository.get(user.id)
            if preferences and preferences.favorite_genres:
                genres = preferences.favorite_genres[:MAX_GENRE_FILTER_VALUES]
                books = await self.book_repository.list_by_genres(genres, self.popular_limit)
                if books:
                    return books, "personalized"

            recent = await self._recent_books(user)
            if recent:
                result = await self.ai_resolver.complete_books(render_history(recent, preferences))
                if isinstance(result, Ok):
                    return result.books, "ai_personalized"
                logger.info("History-based suggestions unavailable for %s: %s", user.id, result)

        books, from_store = await self.fallback.popular(self.popular_limit)
        return books, "popular" if from_store else "fallback"

    async def _recent_books(self, user: User) -> list[Book]:
        entries = await self.history_repository.list_for_user(user.id, limit=RECENT_HISTORY_LIMIT)
        book_ids = []
        for entry in entries:
            book_id = entry.book_id or (entry.book_ids[0] if entry.book_ids else None)
            if book_id and book_id not in book_ids:
                book_ids.append(book_id)
        return await self.book_repository.get_many(book_ids)

    # ------------------------------------------------------------------
    # Similar books
    # ------------------------------------------------------------------
    async def similar(self, book_id: str) -> tuple[list[Book], str]:
        cached = await self.similar_repository.get(book_id)
        if cached and is_fresh(cached.created_at + self.cache_duration, self.clock()):
            return cached.books, "cache"

        book = await self.book_repository.get_by_id(book_id)
        if book is None:
            raise BookError("Book not found", code="book/not-found")

        similar = await self.book_repository.list_by_genres(
            book.genres[:MAX_GENRE_FILTER_VALUES], self.recommendation_count, exclude_id=book.id
        )
        if len(similar) >= self.recommendation_count / 2:
            source = "database"
        else:
            result = await self.ai_resolver.complete_books(
                render_similar(book, self.recommendation_count)
            )
            if isinstance(result, Ok):
                similar = self._merge(similar, result.books, exclude=book)
                source = "hybrid"
            else:
                logger.warning("Similar-books top-up failed for %s: %s", book_id, result)
                source = "database_fallback"

        await self.similar_repository.put(
            SimilarBooksEntry(book_id=book_id, books=similar, source=source, created_at=self.clock())
        )
        return similar, source

    def _merge(self, found: list[Book], suggested: list[Book], exclude: Book) -> list[Book]:
        combined = list(found)
        seen = {(b.title.lower(), b.author.lower()) for b in combined}
        seen.add((exclude.title.lower(), exclude.author.lower()))
        for book in suggested:
            if len(combined) >= self.recommendation_count:
                break
            key = (book.title.lower(), book.author.lower())
            if key not in seen:
                seen.add(key)
                combined.append(book)
        return combined
