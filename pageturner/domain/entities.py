"""Domain entities for PageTurner."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from uuid import UUID

from pageturner.core.constants import PLACEHOLDER_IMAGE_URL


@dataclass
class User:
    id: UUID
    username: str
    email: str
    hashed_password: str
    is_active: bool = True
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class Book:
    id: str
    title: str
    author: str
    genres: list[str] = field(default_factory=list)
    rating: float = 0.0
    review_count: int = 0
    page_count: int = 0
    publication_date: str = "Unknown"
    description: str = "No description available"
    image_url: str = PLACEHOLDER_IMAGE_URL
    buy_links: dict[str, str] = field(default_factory=dict)
    read_links: dict[str, str] = field(default_factory=dict)
    source: str = "seed"  # seed | ai
    search_queries: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class SearchOptions:
    """Optional narrowing filters attached to a search query."""

    genre: Optional[str] = None
    mood: Optional[str] = None
    length: Optional[str] = None  # short | medium | long
    time_frame: Optional[str] = None

    def has_filters(self) -> bool:
        """True when any filter that changes routing (genre, mood, length) is set."""
        return bool(self.genre or self.mood or self.length)

    def as_dict(self) -> dict:
        """Non-empty options only, for prompts, cache keys and logs."""
        values = {
            "genre": self.genre,
            "mood": self.mood,
            "length": self.length,
            "time_frame": self.time_frame,
        }
        return {k: v for k, v in values.items() if v}


@dataclass
class CacheEntry:
    key: str
    query: str
    options: dict
    results: list[Book]
    created_at: datetime
    expires_at: datetime


@dataclass
class SimilarBooksEntry:
    """Cached similar-book list for one book (``book_recommendations``)."""

    book_id: str
    books: list[Book]
    source: str  # database | hybrid | database_fallback
    created_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class UserPreferences:
    user_id: UUID
    favorite_genres: list[str] = field(default_factory=list)
    favorite_authors: list[str] = field(default_factory=list)
    preferred_moods: list[str] = field(default_factory=list)
    preferred_length: Optional[str] = None
    updated_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class Review:
    id: UUID
    user_id: UUID
    book_id: str
    rating: int
    text: str
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class SavedBook:
    """A bookmark or favourite (``kind``) linking a user to a book."""

    id: UUID
    user_id: UUID
    book_id: str
    kind: str  # bookmark | favorite
    created_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class HistoryEntry:
    """One line of a user's activity log: a search, bookmark, favourite or feedback."""

    id: UUID
    user_id: UUID
    action: str  # search | bookmark | favorite | feedback | review
    book_id: Optional[str] = None
    query: Optional[str] = None
    options: Optional[dict] = None
    book_ids: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class FeedbackStats:
    """Per-user like counters used to infer taste from feedback."""

    user_id: UUID
    genre_preferences: dict[str, dict] = field(default_factory=dict)
    length_preferences: dict[str, dict] = field(default_factory=dict)
    updated_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class ChatMessage:
    id: UUID
    session_id: UUID
    sender: str  # user | assistant
    content: str
    recommendations: list[Book] = field(default_factory=list)
    options: dict = field(default_factory=dict)
    regenerated_from: Optional[UUID] = None
    created_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class ChatSession:
    id: UUID
    title: str
    user_id: Optional[UUID] = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class Page:
    """A page of books from a cursor-paginated query."""

    items: list[Book]
    next_cursor: Optional[str] = None
    has_more: bool = False
