"""User preferences: explicit settings plus what like/dislike feedback implies.

Feedback on a book updates two things:

  - ``feedback_stats``: per genre and per length bucket, ``count`` (all
    feedback), ``likes`` and ``probability = likes / count``;
  - on a like, the book's genres are merged into ``favorite_genres`` and
    its length bucket becomes ``preferred_length``.

This is the only module that mutates preferences.
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

from pageturner.core.constants import MESSAGES, length_category
from pageturner.core.errors import BookError
from pageturner.domain.entities import Book, FeedbackStats, HistoryEntry, UserPreferences
from pageturner.domain.repositories import (
    IBookRepository,
    IFeedbackStatsRepository,
    IHistoryRepository,
    IUserPreferenceRepository,
)

logger = logging.getLogger(__name__)


def bump(counters: dict[str, dict], key: str, liked: bool) -> None:
    entry = counters.setdefault(key, {"count": 0, "likes": 0})
    entry["count"] += 1
    if liked:
        entry["likes"] += 1
    entry["probability"] = entry["likes"] / entry["count"]


class PreferenceService:

    def __init__(
        self,
        preference_repo: IUserPreferenceRepository,
        feedback_repo: IFeedbackStatsRepository,
        book_repo: IBookRepository,
        history_repo: IHistoryRepository,
    ):
        self.preference_repo = preference_repo
        self.feedback_repo = feedback_repo
        self.book_repo = book_repo
        self.history_repo = history_repo

    # ------------------------------------------------------------------
    # Explicit
    # ------------------------------------------------------------------
    async def get_preferences(self, user_id: UUID) -> UserPreferences:
        return await self.preference_repo.get_or_create(user_id)

    async def update_preferences(
        self,
        user_id: UUID,
        *,
        favorite_genres: Optional[list[str]] = None,
        favorite_authors: Optional[list[str]] = None,
        preferred_moods: Optional[list[str]] = None,
        preferred_length: Optional[str] = None,
    ) -> UserPreferences:
        """Partial update: only non-None fields are changed."""
        prefs = await self.preference_repo.get_or_create(user_id)
        if favorite_genres is not None:
            prefs.favorite_genres = list(dict.fromkeys(favorite_genres))
        if favorite_authors is not None:
            prefs.favorite_authors = list(dict.fromkeys(favorite_authors))
        if preferred_moods is not None:
            prefs.preferred_moods = list(dict.fromkeys(preferred_moods))
        if preferred_length is not None:
            prefs.preferred_length = preferred_length
        return await self.preference_repo.update(prefs)

    # ------------------------------------------------------------------
    # Implicit (feedback)
    # ------------------------------------------------------------------
    async def record_feedback(self, user_id: UUID, book_id: str, liked: bool) -> FeedbackStats:
        book = await self.book_repo.get_by_id(book_id)
        if book is None:
            raise BookError(MESSAGES["book_not_found"], code="book/not-found")

        await self.history_repo.record(
            HistoryEntry(id=uuid4(), user_id=user_id, action="feedback", book_id=book_id)
        )
        stats = await self._update_stats(user_id, book, liked)
        if liked:
            await self._promote(user_id, book)
        logger.info("Feedback from %s on %s: %s", user_id, book_id, "like" if liked else "dislike")
        return stats

    async def _update_stats(self, user_id: UUID, book: Book, liked: bool) -> FeedbackStats:
        stats = await self.feedback_repo.get_or_create(user_id)
        for genre in book.genres:
            bump(stats.genre_preferences, genre, liked)
        length = length_category(book.page_count)
        if length:
            bump(stats.length_preferences, length, liked)
        return await self.feedback_repo.update(stats)

    async def _promote(self, user_id: UUID, book: Book) -> None:
        prefs = await self.preference_repo.get_or_create(user_id)
        merged = list(dict.fromkeys([*prefs.favorite_genres, *book.genres]))
        if merged == prefs.favorite_genres:
            return
        prefs.favorite_genres = merged
        prefs.preferred_length = length_category(book.page_count) or prefs.preferred_length
        await self.preference_repo.update(prefs)
