"""Bookmarks, favourites, saved-for-later and the activity history behind them."""

import logging
from uuid import UUID, uuid4

from pageturner.core.constants import MESSAGES
from pageturner.core.errors import BookError
from pageturner.domain.entities import Book, HistoryEntry, SavedBook
from pageturner.domain.repositories import IBookRepository, IHistoryRepository, ISavedBookRepository

logger = logging.getLogger(__name__)

# Kinds that leave an entry in the activity history
HISTORY_KINDS = ("bookmark", "favorite")


class LibraryService:

    def __init__(
        self,
        saved_repository: ISavedBookRepository,
        book_repository: IBookRepository,
        history_repository: IHistoryRepository,
    ):
        self.saved_repository = saved_repository
        self.book_repository = book_repository
        self.history_repository = history_repository

    async def list_saved(self, user_id: UUID, kind: str) -> list[Book]:
        saved = await self.saved_repository.list_for_user(user_id, kind)
        return await self.book_repository.get_many([s.book_id for s in saved])

    async def save(self, user_id: UUID, book_id: str, kind: str) -> SavedBook:
        if await self.book_repository.get_by_id(book_id) is None:
            raise BookError(MESSAGES["book_not_found"], code="book/not-found")
        saved = await self.saved_repository.add(
            SavedBook(id=uuid4(), user_id=user_id, book_id=book_id, kind=kind)
        )
        if kind in HISTORY_KINDS:
            await self.history_repository.record(
                HistoryEntry(id=uuid4(), user_id=user_id, action=kind, book_id=book_id)
            )
        logger.info("User %s saved %s as %s", user_id, book_id, kind)
        return saved

    async def unsave(self, user_id: UUID, book_id: str, kind: str) -> bool:
        return await self.saved_repository.remove(user_id, book_id, kind)

    async def history(
        self, user_id: UUID, action: str | None = None, limit: int = 20
    ) -> list[HistoryEntry]:
        return await self.history_repository.list_for_user(user_id, action, limit)

    async def delete_history_entry(self, user_id: UUID, entry_id: UUID) -> None:
        entry = await self.history_repository.get_by_id(entry_id)
        if entry is None:
            raise LookupError("History entry not found")
        if entry.user_id != user_id:
            raise PermissionError("You can only delete your own history")
        await self.history_repository.delete(entry_id)
