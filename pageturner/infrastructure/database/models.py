"""SQLAlchemy database models."""

import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, relationship


class Base(DeclarativeBase):
    pass


class UserModel(Base):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    username = Column(String(100), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    hashed_password = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    reviews = relationship("ReviewModel", back_populates="user", lazy="selectin")
    preferences = relationship(
        "UserPreferenceModel", back_populates="user", uselist=False, lazy="selectin"
    )


class BookModel(Base):
    """A catalogue book.

    ``title_lower`` backs the keyword prefix range query; genres live in
    ``book_genres`` so containment filters work on any backend.
    """

    __tablename__ = "books"
    __table_args__ = (Index("ix_books_rating_reviews", "rating", "review_count"),)

    id = Column(String(255), primary_key=True)
    title = Column(String(255), nullable=False)
    title_lower = Column(String(255), nullable=False, index=True)
    author = Column(String(255), nullable=False, index=True)
    rating = Column(Float, default=0.0, nullable=False)
    review_count = Column(Integer, default=0, nullable=False)
    page_count = Column(Integer, default=0, nullable=False)
    publication_date = Column(String(50), default="Unknown", nullable=False)
    description = Column(Text, nullable=False, default="No description available")
    image_url = Column(String(512), nullable=False)
    buy_links = Column(JSON, nullable=False, default=dict)
    read_links = Column(JSON, nullable=False, default=dict)
    source = Column(String(20), nullable=False, default="seed")  # seed | ai
    search_queries = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    genre_links = relationship(
        "BookGenreModel", back_populates="book", lazy="selectin", cascade="all, delete-orphan"
    )
    reviews = relationship("ReviewModel", back_populates="book", lazy="raise")


class BookGenreModel(Base):
    __tablename__ = "book_genres"

    book_id = Column(String(255), ForeignKey("books.id"), primary_key=True)
    genre = Column(String(100), primary_key=True, index=True)

    book = relationship("BookModel", back_populates="genre_links")


class ReviewModel(Base):
    __tablename__ = "reviews"
    __table_args__ = (UniqueConstraint("user_id", "book_id", name="uq_user_book_review"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    book_id = Column(String(255), ForeignKey("books.id"), nullable=False, index=True)
    rating = Column(Integer, nullable=False)
    text = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    user = relationship("UserModel", back_populates="reviews")
    book = relationship("BookModel", back_populates="reviews")


class UserPreferenceModel(Base):
    """What the user explicitly told us, plus genres promoted by likes."""

    __tablename__ = "user_preferences"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, unique=True)
    favorite_genres = Column(JSON, default=list, nullable=False)
    favorite_authors = Column(JSON, default=list, nullable=False)
    preferred_moods = Column(JSON, default=list, nullable=False)
    preferred_length = Column(String(20), nullable=True)  # short|medium|long
    updated_at = Column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    user = relationship("UserModel", back_populates="preferences")


class FeedbackStatsModel(Base):
    """Per-user like counters: ``{key: {count, likes, probability}}``."""

    __tablename__ = "feedback_stats"

    user_id = Column(Uuid, ForeignKey("users.id"), primary_key=True)
    genre_preferences = Column(JSON, default=dict, nullable=False)
    length_preferences = Column(JSON, default=dict, nullable=False)
    updated_at = Column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class SavedBookModel(Base):
    """Bookmarks, favourites and saved-for-later share one table, told apart by ``kind``."""

    __tablename__ = "user_books"
    __table_args__ = (
        UniqueConstraint("user_id", "book_id", "kind", name="uq_user_book_kind"),
        Index("ix_user_books_user_kind", "user_id", "kind"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    book_id = Column(String(255), ForeignKey("books.id"), nullable=False)
    kind = Column(String(20), nullable=False)  # bookmark|favorite|saved_for_later
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class HistoryModel(Base):
    __tablename__ = "user_history"
    __table_args__ = (
        Index("ix_history_user_action", "user_id", "action"),
        Index("ix_history_created", "created_at"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    action = Column(String(20), nullable=False)  # search|bookmark|favorite|feedback|review
    book_id = Column(String(255), nullable=True)
    query = Column(Text, nullable=True)
    options = Column(JSON, nullable=True)
    book_ids = Column(JSON, default=list, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class SearchCacheModel(Base):
    """Cached AI search results. Expired rows are left in place."""

    __tablename__ = "search_cache"

    key = Column(String(64), primary_key=True)
    query = Column(Text, nullable=False)
    options = Column(JSON, default=dict, nullable=False)
    results = Column(JSON, default=list, nullable=False)
    created_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)


class SearchStatModel(Base):
    __tablename__ = "search_stats"

    query = Column(String(500), primary_key=True)
    count = Column(Integer, default=0, nullable=False, index=True)
    users = Column(JSON, default=list, nullable=False)  # user id strings
    last_searched_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class BookRecommendationModel(Base):
    """Similar-books cache, one row per source book."""

    __tablename__ = "book_recommendations"

    book_id = Column(String(255), primary_key=True)
    books = Column(JSON, default=list, nullable=False)
    source = Column(String(30), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class ChatSessionModel(Base):
    __tablename__ = "chat_sessions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=True, index=True)
    title = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class ChatMessageModel(Base):
    __tablename__ = "chat_messages"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    session_id = Column(Uuid, ForeignKey("chat_sessions.id"), nullable=False, index=True)
    sender = Column(String(20), nullable=False)  # user|assistant
    content = Column(Text, nullable=False)
    recommendations = Column(JSON, default=list, nullable=False)
    options = Column(JSON, default=dict, nullable=False)
    regenerated_from = Column(Uuid, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
