"""Repository interfaces (ports) for dependency inversion."""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from pageturner.domain.entities import (
    Book,
    CacheEntry,
    ChatMessage,
    ChatSession,
    FeedbackStats,
    HistoryEntry,
    Page,
    Review,
    SavedBook,
    SimilarBooksEntry,
    User,
    UserPreferences,
)


class IUserRepository(ABC):

    @abstractmethod
    async def create(self, user: User) -> User:
        pass

    @abstractmethod
    async def get_by_id(self, user_id: UUID) -> Optional[User]:
        pass

    @abstractmethod
    async def get_by_email(self, email: str) -> Optional[User]:
        pass

    @abstractmethod
    async def get_by_username(self, username: str) -> Optional[User]:
        pass

    @abstractmethod
    async def update(self, user: User) -> User:
        pass


class IBookRepository(ABC):

    @abstractmethod
    async def create(self, book: Book) -> Book:
        pass

    @abstractmethod
    async def get_by_id(self, book_id: str) -> Optional[Book]:
        pass

    @abstractmethod
    async def get_many(self, book_ids: list[str]) -> list[Book]:
        """Fetch books by id, preserving the order of ``book_ids``; unknown ids are skipped."""
        pass

    @abstractmethod
    async def search_by_title_prefix(
        self,
        lower_bound: str,
        upper_bound: str,
        *,
        genre: Optional[str] = None,
        min_pages: Optional[int] = None,
        max_pages: Optional[int] = None,
        cursor: Optional[str] = None,
        limit: int = 20,
    ) -> Page:
        """Range-match ``title_lower`` between the bounds, best rated first.

        Page bounds are inclusive.  ``cursor`` is the id of the last book of
        the previous page.
        """
        pass

    @abstractmethod
    async def list_popular(self, limit: int) -> list[Book]:
        """Books ordered by rating, then review count, both descending."""
        pass

    @abstractmethod
    async def list_by_genres(
        self, genres: list[str], limit: int, exclude_id: Optional[str] = None
    ) -> list[Book]:
        """Books sharing any of ``genres``, best rated first."""
        pass

    @abstractmethod
    async def upsert_generated(self, book: Book, query: str) -> Book:
        """Insert an AI-generated book, or record ``query`` on an existing one."""
        pass

    @abstractmethod
    async def update_rating(self, book_id: str, rating: float, review_count: int) -> None:
        pass


class ISearchCacheRepository(ABC):

    @abstractmethod
    async def get(self, key: str) -> Optional[CacheEntry]:
        """Return the stored entry regardless of its expiry."""
        pass

    @abstractmethod
    async def put(self, entry: CacheEntry) -> None:
        """Store ``entry``, replacing any entry with the same key."""
        pass


class ISimilarBooksRepository(ABC):

    @abstractmethod
    async def get(self, book_id: str) -> Optional[SimilarBooksEntry]:
        pass

    @abstractmethod
    async def put(self, entry: SimilarBooksEntry) -> None:
        pass


class ISearchStatsRepository(ABC):

    @abstractmethod
    async def record(self, query: str, user_id: Optional[UUID] = None) -> int:
        """Increment the counter for a normalised query; return the new count."""
        pass

    @abstractmethod
    async def trending(self, limit: int = 10) -> list[str]:
        pass


class IReviewRepository(ABC):

    @abstractmethod
    async def create(self, review: Review) -> Review:
        pass

    @abstractmethod
    async def get_by_id(self, review_id: UUID) -> Optional[Review]:
        pass

    @abstractmethod
    async def get_by_book(self, book_id: str, limit: int = 10) -> list[Review]:
        pass

    @abstractmethod
    async def get_by_user(self, user_id: UUID, limit: int = 10) -> list[Review]:
        pass

    @abstractmethod
    async def get_by_user_and_book(self, user_id: UUID, book_id: str) -> Optional[Review]:
        pass

    @abstractmethod
    async def update(self, review: Review) -> Review:
        pass

    @abstractmethod
    async def delete(self, review_id: UUID) -> bool:
        pass


class IUserPreferenceRepository(ABC):

    @abstractmethod
    async def get(self, user_id: UUID) -> Optional[UserPreferences]:
        pass

    @abstractmethod
    async def get_or_create(self, user_id: UUID) -> UserPreferences:
        pass

    @abstractmethod
    async def update(self, prefs: UserPreferences) -> UserPreferences:
        pass


class IFeedbackStatsRepository(ABC):

    @abstractmethod
    async def get_or_create(self, user_id: UUID) -> FeedbackStats:
        pass

    @abstractmethod
    async def update(self, stats: FeedbackStats) -> FeedbackStats:
        pass


class ISavedBookRepository(ABC):

    @abstractmethod
    async def add(self, saved: SavedBook) -> SavedBook:
        """Save a book; saving the same (user, book, kind) twice returns the first row."""
        pass

    @abstractmethod
    async def remove(self, user_id: UUID, book_id: str, kind: str) -> bool:
        pass

    @abstractmethod
    async def list_for_user(self, user_id: UUID, kind: str) -> list[SavedBook]:
        pass


class IHistoryRepository(ABC):

    @abstractmethod
    async def record(self, entry: HistoryEntry) -> HistoryEntry:
        pass

    @abstractmethod
    async def get_by_id(self, entry_id: UUID) -> Optional[HistoryEntry]:
        pass

    @abstractmethod
    async def list_for_user(
        self, user_id: UUID, action: Optional[str] = None, limit: int = 20
    ) -> list[HistoryEntry]:
        """Newest first."""
        pass

    @abstractmethod
    async def delete(self, entry_id: UUID) -> bool:
        pass


class IChatRepository(ABC):

    @abstractmethod
    async def create_session(self, session: ChatSession) -> ChatSession:
        pass

    @abstractmethod
    async def get_session(self, session_id: UUID) -> Optional[ChatSession]:
        pass

    @abstractmethod
    async def list_sessions(self, user_id: UUID, limit: int = 20) -> list[ChatSession]:
        pass

    @abstractmethod
    async def add_message(self, message: ChatMessage) -> ChatMessage:
        pass

    @abstractmethod
    async def get_message(self, message_id: UUID) -> Optional[ChatMessage]:
        pass

    @abstractmethod
    async def list_messages(self, session_id: UUID) -> list[ChatMessage]:
        pass

    @abstractmethod
    async def delete_session(self, session_id: UUID) -> bool:
        """Delete a session and its messages; False when it does not exist."""
        pass


class ILLMService(ABC):

    @abstractmethod
    async def complete(
        self, messages: list[dict[str, str]], *, max_tokens: int, temperature: float
    ) -> str:
        """Run one chat completion and return the raw assistant text.

        Raises on provider or transport failure; callers categorise the error.
        """
        pass
