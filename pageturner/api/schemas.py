"""Pydantic schemas for API requests and responses.

Book-facing payloads use camelCase on the wire (``reviewCount``,
``bookId``); snake_case names are accepted on input as well.
"""

from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, StrictBool
from pydantic.alias_generators import to_camel

from pageturner.domain.entities import Book, SearchOptions

LengthBucket = Literal["short", "medium", "long"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------
class SignupRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class ProfileUpdateRequest(BaseModel):
    username: Optional[str] = Field(None, min_length=3, max_length=100)
    email: Optional[EmailStr] = None


class UserResponse(BaseModel):
    id: UUID
    username: str
    email: str
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# Books
# ---------------------------------------------------------------------------
class BookResponse(CamelModel):
    id: str
    title: str
    author: str
    genres: list[str] = []
    rating: float = 0.0
    review_count: int = 0
    page_count: int = 0
    publication_date: str = "Unknown"
    description: str = ""
    image_url: str = ""
    buy_links: dict[str, str] = {}
    read_links: dict[str, str] = {}
    source: str = "seed"


def books_out(books: list[Book]) -> list[BookResponse]:
    return [BookResponse.model_validate(b) for b in books]


class BookListResponse(BaseModel):
    books: list[BookResponse]


class BookPageResponse(BaseModel):
    books: list[BookResponse]
    next_cursor: Optional[str] = None
    has_more: bool = False


class RecommendationsResponse(BaseModel):
    books: list[BookResponse]
    source: str


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------
class SearchOptionsSchema(CamelModel):
    genre: Optional[str] = Field(None, max_length=100)
    genres: Optional[list[str]] = None
    mood: Optional[str] = Field(None, max_length=100)
    length: Optional[LengthBucket] = None
    time_frame: Optional[str] = Field(None, max_length=100)

    def to_entity(self) -> SearchOptions:
        return SearchOptions(
            genre=self.genre or (self.genres[0] if self.genres else None),
            mood=self.mood,
            length=self.length,
            time_frame=self.time_frame,
        )


class SearchRequest(BaseModel):
    query: str = Field("", max_length=500)
    options: Optional[SearchOptionsSchema] = None
    regenerate: bool = False


class SearchResponse(BaseModel):
    books: list[BookResponse]
    source: str
    query: str
    options: dict = {}


class TrendingResponse(BaseModel):
    queries: list[str]


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------
class ChatCreateRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=500)
    options: Optional[SearchOptionsSchema] = None


class ChatCreateResponse(CamelModel):
    chat_id: UUID
    message: str
    recommendations: list[BookResponse]


class ChatSessionResponse(CamelModel):
    id: UUID
    title: str
    created_at: datetime
    updated_at: datetime


class ChatMessageResponse(CamelModel):
    id: UUID
    sender: str
    content: str
    recommendations: list[BookResponse] = []
    feedback: dict[str, str] = {}
    options: dict = {}
    regenerated_from: Optional[UUID] = None
    created_at: datetime


class ChatSessionListResponse(BaseModel):
    sessions: list[ChatSessionResponse]


class ChatDetailResponse(BaseModel):
    session: ChatSessionResponse
    messages: list[ChatMessageResponse]


class ChatFeedbackRequest(CamelModel):
    chat_id: UUID
    message_id: UUID
    book_id: str
    feedback: Literal["like", "dislike"]


class ChatFeedbackResponse(BaseModel):
    success: bool = True
    message: str


class ChatRegenerateRequest(CamelModel):
    chat_id: UUID
    message_id: UUID
    options: Optional[SearchOptionsSchema] = None


class ChatRegenerateResponse(CamelModel):
    message: str
    recommendations: list[BookResponse]
    message_id: UUID


class ChatDeleteResponse(BaseModel):
    success: bool = True
    message: str


# ---------------------------------------------------------------------------
# Reviews
# ---------------------------------------------------------------------------
class ReviewCreate(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    text: str = Field("", max_length=5000)


class ReviewUpdate(BaseModel):
    rating: Optional[int] = Field(None, ge=1, le=5)
    text: Optional[str] = Field(None, max_length=5000)


class ReviewResponse(CamelModel):
    id: UUID
    user_id: UUID
    book_id: str
    rating: int
    text: str
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# User preferences, feedback, saved books, history
# ---------------------------------------------------------------------------
class PreferencesResponse(CamelModel):
    favorite_genres: list[str] = []
    favorite_authors: list[str] = []
    preferred_moods: list[str] = []
    preferred_length: Optional[str] = None
    updated_at: Optional[datetime] = None


class PreferencesUpdate(CamelModel):
    """Partial update: only provided fields are changed."""

    favorite_genres: Optional[list[str]] = None
    favorite_authors: Optional[list[str]] = None
    preferred_moods: Optional[list[str]] = None
    preferred_length: Optional[LengthBucket] = None


class FeedbackRequest(CamelModel):
    book_id: str = Field(..., min_length=1)
    liked: StrictBool


class FeedbackResponse(CamelModel):
    message: str
    book_id: str
    liked: bool


class SavedBookRequest(CamelModel):
    book_id: str = Field(..., min_length=1)


class HistoryEntryResponse(CamelModel):
    id: UUID
    action: str
    book_id: Optional[str] = None
    query: Optional[str] = None
    options: Optional[dict] = None
    book_ids: list[str] = []
    created_at: datetime


class HistoryResponse(BaseModel):
    entries: list[HistoryEntryResponse]
