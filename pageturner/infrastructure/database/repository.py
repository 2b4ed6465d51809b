"""Repository implementations."""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import and_, delete, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pageturner.core.constants import PLACEHOLDER_IMAGE_URL
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
from pageturner.domain.repositories import (
    IBookRepository,
    IChatRepository,
    IFeedbackStatsRepository,
    IHistoryRepository,
    IReviewRepository,
    ISavedBookRepository,
    ISearchCacheRepository,
    ISearchStatsRepository,
    ISimilarBooksRepository,
    IUserPreferenceRepository,
    IUserRepository,
)
from pageturner.infrastructure.database.models import (
    BookGenreModel,
    BookModel,
    BookRecommendationModel,
    ChatMessageModel,
    ChatSessionModel,
    FeedbackStatsModel,
    HistoryModel,
    ReviewModel,
    SavedBookModel,
    SearchCacheModel,
    SearchStatModel,
    UserModel,
    UserPreferenceModel,
)


async def commit(session: AsyncSession) -> None:
    """Commit, or roll back and re-raise so the session stays usable."""
    try:
        await session.commit()
    except SQLAlchemyError:
        await session.rollback()
        raise


# ---------------------------------------------------------------------------
# JSON column helpers (books embedded in cache / chat rows)
# ---------------------------------------------------------------------------
def book_to_json(book: Book) -> dict:
    return {
        "id": book.id,
        "title": book.title,
        "author": book.author,
        "genres": list(book.genres),
        "rating": book.rating,
        "review_count": book.review_count,
        "page_count": book.page_count,
        "publication_date": book.publication_date,
        "description": book.description,
        "image_url": book.image_url,
        "buy_links": dict(book.buy_links),
        "read_links": dict(book.read_links),
        "source": book.source,
    }


def book_from_json(data: dict) -> Book:
    return Book(
        id=data["id"],
        title=data["title"],
        author=data["author"],
        genres=list(data.get("genres") or []),
        rating=float(data.get("rating") or 0.0),
        review_count=int(data.get("review_count") or 0),
        page_count=int(data.get("page_count") or 0),
        publication_date=data.get("publication_date") or "Unknown",
        description=data.get("description") or "No description available",
        image_url=data.get("image_url") or PLACEHOLDER_IMAGE_URL,
        buy_links=dict(data.get("buy_links") or {}),
        read_links=dict(data.get("read_links") or {}),
        source=data.get("source") or "seed",
    )


# ---------------------------------------------------------------------------
# User Repository
# ---------------------------------------------------------------------------
class UserRepository(IUserRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, user: User) -> User:
        db_user = UserModel(
            id=user.id,
            username=user.username,
            email=user.email,
            hashed_password=user.hashed_password,
            is_active=user.is_active,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )
        self.session.add(db_user)
        await commit(self.session)
        await self.session.refresh(db_user)
        return self._to_entity(db_user)

    async def get_by_id(self, user_id: UUID) -> Optional[User]:
        result = await self.session.execute(select(UserModel).where(UserModel.id == user_id))
        db_user = result.scalar_one_or_none()
        return self._to_entity(db_user) if db_user else None

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.session.execute(select(UserModel).where(UserModel.email == email))
        db_user = result.scalar_one_or_none()
        return self._to_entity(db_user) if db_user else None

    async def get_by_username(self, username: str) -> Optional[User]:
        result = await self.session.execute(select(UserModel).where(UserModel.username == username))
        db_user = result.scalar_one_or_none()
        return self._to_entity(db_user) if db_user else None

    async def update(self, user: User) -> User:
        db_user = await self.session.get(UserModel, user.id)
        db_user.username = user.username
        db_user.email = user.email
        db_user.is_active = user.is_active
        db_user.updated_at = datetime.utcnow()
        await commit(self.session)
        await self.session.refresh(db_user)
        return self._to_entity(db_user)

    @staticmethod
    def _to_entity(model: UserModel) -> User:
        return User(
            id=model.id,
            username=model.username,
            email=model.email,
            hashed_password=model.hashed_password,
            is_active=model.is_active,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )


# ---------------------------------------------------------------------------
# Book Repository
# ---------------------------------------------------------------------------
class BookRepository(IBookRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, book: Book) -> Book:
        db_book = BookModel(
            id=book.id,
            title=book.title,
            title_lower=book.title.lower(),
            author=book.author,
            rating=book.rating,
            review_count=book.review_count,
            page_count=book.page_count,
            publication_date=book.publication_date,
            description=book.description,
            image_url=book.image_url,
            buy_links=dict(book.buy_links),
            read_links=dict(book.read_links),
            source=book.source,
            search_queries=list(book.search_queries),
            created_at=book.created_at,
            updated_at=book.updated_at,
            genre_links=[BookGenreModel(genre=g) for g in dict.fromkeys(book.genres)],
        )
        self.session.add(db_book)
        await commit(self.session)
        return self._to_entity(db_book)

    async def get_by_id(self, book_id: str) -> Optional[Book]:
        result = await self.session.execute(select(BookModel).where(BookModel.id == book_id))
        db_book = result.scalar_one_or_none()
        return self._to_entity(db_book) if db_book else None

    async def get_many(self, book_ids: list[str]) -> list[Book]:
        if not book_ids:
            return []
        result = await self.session.execute(select(BookModel).where(BookModel.id.in_(book_ids)))
        by_id = {b.id: b for b in result.scalars().all()}
        return [self._to_entity(by_id[i]) for i in book_ids if i in by_id]

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
        stmt = select(BookModel).where(
            BookModel.title_lower >= lower_bound,
            BookModel.title_lower <= upper_bound,
        )
        if genre:
            stmt = stmt.where(BookModel.genre_links.any(BookGenreModel.genre == genre))
        if min_pages is not None:
            stmt = stmt.where(BookModel.page_count >= min_pages)
        if max_pages is not None:
            stmt = stmt.where(BookModel.page_count <= max_pages)
        if cursor:
            anchor = await self.session.execute(
                select(BookModel.rating).where(BookModel.id == cursor)
            )
            anchor_rating = anchor.scalar_one_or_none()
            if anchor_rating is not None:
                stmt = stmt.where(
                    or_(
                        BookModel.rating < anchor_rating,
                        and_(BookModel.rating == anchor_rating, BookModel.id > cursor),
                    )
                )
        stmt = stmt.order_by(BookModel.rating.desc(), BookModel.id.asc()).limit(limit)
        result = await self.session.execute(stmt)
        items = [self._to_entity(b) for b in result.scalars().all()]
        has_more = len(items) == limit
        return Page(items=items, next_cursor=items[-1].id if has_more else None, has_more=has_more)

    async def list_popular(self, limit: int) -> list[Book]:
        result = await self.session.execute(
            select(BookModel)
            .order_by(BookModel.rating.desc(), BookModel.review_count.desc())
            .limit(limit)
        )
        return [self._to_entity(b) for b in result.scalars().all()]

    async def list_by_genres(
        self, genres: list[str], limit: int, exclude_id: Optional[str] = None
    ) -> list[Book]:
        if not genres:
            return []
        stmt = select(BookModel).where(BookModel.genre_links.any(BookGenreModel.genre.in_(genres)))
        if exclude_id:
            stmt = stmt.where(BookModel.id != exclude_id)
        stmt = stmt.order_by(BookModel.rating.desc(), BookModel.review_count.desc()).limit(limit)
        result = await self.session.execute(stmt)
        return [self._to_entity(b) for b in result.scalars().all()]

    async def upsert_generated(self, book: Book, query: str) -> Book:
        result = await self.session.execute(
            select(BookModel).where(
                BookModel.title_lower == book.title.lower(),
                func.lower(BookModel.author) == book.author.lower(),
            )
        )
        db_book = result.scalars().first()
        if db_book is None:
            book.source = "ai"
            book.search_queries = [query]
            return await self.create(book)
        if query not in (db_book.search_queries or []):
            db_book.search_queries = [*(db_book.search_queries or []), query]
            db_book.updated_at = datetime.utcnow()
            await commit(self.session)
        return self._to_entity(db_book)

    async def update_rating(self, book_id: str, rating: float, review_count: int) -> None:
        result = await self.session.execute(select(BookModel).where(BookModel.id == book_id))
        db_book = result.scalar_one()
        db_book.rating = rating
        db_book.review_count = review_count
        db_book.updated_at = datetime.utcnow()
        await commit(self.session)

    @staticmethod
    def _to_entity(model: BookModel) -> Book:
        return Book(
            id=model.id,
            title=model.title,
            author=model.author,
            genres=[link.genre for link in model.genre_links],
            rating=model.rating,
            review_count=model.review_count,
            page_count=model.page_count,
            publication_date=model.publication_date,
            description=model.description,
            image_url=model.image_url,
            buy_links=model.buy_links or {},
            read_links=model.read_links or {},
            source=model.source,
            search_queries=model.search_queries or [],
            created_at=model.created_at,
            updated_at=model.updated_at,
        )


# ---------------------------------------------------------------------------
# Search Cache Repository
# ---------------------------------------------------------------------------
class SearchCacheRepository(ISearchCacheRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, key: str) -> Optional[CacheEntry]:
        db_entry = await self.session.get(SearchCacheModel, key)
        return self._to_entity(db_entry) if db_entry else None

    async def put(self, entry: CacheEntry) -> None:
        db_entry = await self.session.get(SearchCacheModel, entry.key)
        if db_entry is None:
            db_entry = SearchCacheModel(key=entry.key)
            self.session.add(db_entry)
        db_entry.query = entry.query
        db_entry.options = entry.options
        db_entry.results = [book_to_json(b) for b in entry.results]
        db_entry.created_at = entry.created_at
        db_entry.expires_at = entry.expires_at
        await commit(self.session)

    @staticmethod
    def _to_entity(model: SearchCacheModel) -> CacheEntry:
        return CacheEntry(
            key=model.key,
            query=model.query,
            options=model.options or {},
            results=[book_from_json(b) for b in model.results or []],
            created_at=model.created_at,
            expires_at=model.expires_at,
        )


# ---------------------------------------------------------------------------
# Similar Books Repository
# ---------------------------------------------------------------------------
class SimilarBooksRepository(ISimilarBooksRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, book_id: str) -> Optional[SimilarBooksEntry]:
        db_entry = await self.session.get(BookRecommendationModel, book_id)
        if db_entry is None:
            return None
        return SimilarBooksEntry(
            book_id=db_entry.book_id,
            books=[book_from_json(b) for b in db_entry.books or []],
            source=db_entry.source,
            created_at=db_entry.created_at,
        )

    async def put(self, entry: SimilarBooksEntry) -> None:
        db_entry = await self.session.get(BookRecommendationModel, entry.book_id)
        if db_entry is None:
            db_entry = BookRecommendationModel(book_id=entry.book_id)
            self.session.add(db_entry)
        db_entry.books = [book_to_json(b) for b in entry.books]
        db_entry.source = entry.source
        db_entry.created_at = entry.created_at
        await commit(self.session)


# ---------------------------------------------------------------------------
# Search Stats Repository
# ---------------------------------------------------------------------------
class SearchStatsRepository(ISearchStatsRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def record(self, query: str, user_id: Optional[UUID] = None) -> int:
        db_stat = await self.session.get(SearchStatModel, query)
        if db_stat is None:
            db_stat = SearchStatModel(query=query, count=0, users=[])
            self.session.add(db_stat)
        db_stat.count = (db_stat.count or 0) + 1
        if user_id is not None and str(user_id) not in (db_stat.users or []):
            db_stat.users = [*(db_stat.users or []), str(user_id)]
        db_stat.last_searched_at = datetime.utcnow()
        await commit(self.session)
        return db_stat.count

    async def trending(self, limit: int = 10) -> list[str]:
        result = await self.session.execute(
            select(SearchStatModel.query)
            .order_by(SearchStatModel.count.desc(), SearchStatModel.last_searched_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Review Repository
# ---------------------------------------------------------------------------
class ReviewRepository(IReviewRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, review: Review) -> Review:
        db_review = ReviewModel(
            id=review.id,
            user_id=review.user_id,
            book_id=review.book_id,
            rating=review.rating,
            text=review.text,
            created_at=review.created_at,
            updated_at=review.updated_at,
        )
        self.session.add(db_review)
        await commit(self.session)
        await self.session.refresh(db_review)
        return self._to_entity(db_review)

    async def get_by_id(self, review_id: UUID) -> Optional[Review]:
        db_review = await self.session.get(ReviewModel, review_id)
        return self._to_entity(db_review) if db_review else None

    async def get_by_book(self, book_id: str, limit: int = 10) -> list[Review]:
        result = await self.session.execute(
            select(ReviewModel)
            .where(ReviewModel.book_id == book_id)
            .order_by(ReviewModel.created_at.desc())
            .limit(limit)
        )
        return [self._to_entity(r) for r in result.scalars().all()]

    async def get_by_user(self, user_id: UUID, limit: int = 10) -> list[Review]:
        result = await self.session.execute(
            select(ReviewModel)
            .where(ReviewModel.user_id == user_id)
            .order_by(ReviewModel.created_at.desc())
            .limit(limit)
        )
        return [self._to_entity(r) for r in result.scalars().all()]

    async def get_by_user_and_book(self, user_id: UUID, book_id: str) -> Optional[Review]:
        result = await self.session.execute(
            select(ReviewModel).where(
                ReviewModel.user_id == user_id,
                ReviewModel.book_id == book_id,
            )
        )
        db_review = result.scalar_one_or_none()
        return self._to_entity(db_review) if db_review else None

    async def update(self, review: Review) -> Review:
        db_review = await self.session.get(ReviewModel, review.id)
        db_review.rating = review.rating
        db_review.text = review.text
        db_review.updated_at = datetime.utcnow()
        await commit(self.session)
        await self.session.refresh(db_review)
        return self._to_entity(db_review)

    async def delete(self, review_id: UUID) -> bool:
        db_review = await self.session.get(ReviewModel, review_id)
        if db_review:
            await self.session.delete(db_review)
            await commit(self.session)
            return True
        return False

    @staticmethod
    def _to_entity(model: ReviewModel) -> Review:
        return Review(
            id=model.id,
            user_id=model.user_id,
            book_id=model.book_id,
            rating=model.rating,
            text=model.text,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )


# ---------------------------------------------------------------------------
# User Preference Repository
# ---------------------------------------------------------------------------
class UserPreferenceRepository(IUserPreferenceRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _get_model(self, user_id: UUID) -> Optional[UserPreferenceModel]:
        result = await self.session.execute(
            select(UserPreferenceModel).where(UserPreferenceModel.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def get(self, user_id: UUID) -> Optional[UserPreferences]:
        db_pref = await self._get_model(user_id)
        return self._to_entity(db_pref) if db_pref else None

    async def get_or_create(self, user_id: UUID) -> UserPreferences:
        db_pref = await self._get_model(user_id)
        if not db_pref:
            db_pref = UserPreferenceModel(
                id=uuid4(),
                user_id=user_id,
                favorite_genres=[],
                favorite_authors=[],
                preferred_moods=[],
            )
            self.session.add(db_pref)
            await commit(self.session)
            await self.session.refresh(db_pref)
        return self._to_entity(db_pref)

    async def update(self, prefs: UserPreferences) -> UserPreferences:
        db_pref = await self._get_model(prefs.user_id)
        if db_pref is None:
            db_pref = UserPreferenceModel(id=uuid4(), user_id=prefs.user_id)
            self.session.add(db_pref)
        db_pref.favorite_genres = list(prefs.favorite_genres)
        db_pref.favorite_authors = list(prefs.favorite_authors)
        db_pref.preferred_moods = list(prefs.preferred_moods)
        db_pref.preferred_length = prefs.preferred_length
        db_pref.updated_at = datetime.utcnow()
        await commit(self.session)
        await self.session.refresh(db_pref)
        return self._to_entity(db_pref)

    @staticmethod
    def _to_entity(model: UserPreferenceModel) -> UserPreferences:
        return UserPreferences(
            user_id=model.user_id,
            favorite_genres=model.favorite_genres or [],
            favorite_authors=model.favorite_authors or [],
            preferred_moods=model.preferred_moods or [],
            preferred_length=model.preferred_length,
            updated_at=model.updated_at,
        )


# ---------------------------------------------------------------------------
# Feedback Stats Repository
# ---------------------------------------------------------------------------
class FeedbackStatsRepository(IFeedbackStatsRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_or_create(self, user_id: UUID) -> FeedbackStats:
        db_stats = await self.session.get(FeedbackStatsModel, user_id)
        if db_stats is None:
            db_stats = FeedbackStatsModel(
                user_id=user_id, genre_preferences={}, length_preferences={}
            )
            self.session.add(db_stats)
            await commit(self.session)
            await self.session.refresh(db_stats)
        return self._to_entity(db_stats)

    async def update(self, stats: FeedbackStats) -> FeedbackStats:
        db_stats = await self.session.get(FeedbackStatsModel, stats.user_id)
        if db_stats is None:
            db_stats = FeedbackStatsModel(user_id=stats.user_id)
            self.session.add(db_stats)
        # Fresh dicts so the JSON columns register as changed.
        db_stats.genre_preferences = {k: dict(v) for k, v in stats.genre_preferences.items()}
        db_stats.length_preferences = {k: dict(v) for k, v in stats.length_preferences.items()}
        db_stats.updated_at = datetime.utcnow()
        await commit(self.session)
        await self.session.refresh(db_stats)
        return self._to_entity(db_stats)

    @staticmethod
    def _to_entity(model: FeedbackStatsModel) -> FeedbackStats:
        return FeedbackStats(
            user_id=model.user_id,
            genre_preferences=model.genre_preferences or {},
            length_preferences=model.length_preferences or {},
            updated_at=model.updated_at,
        )


# ---------------------------------------------------------------------------
# Saved Book Repository (bookmarks / favourites)
# ---------------------------------------------------------------------------
class SavedBookRepository(ISavedBookRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _find(self, user_id: UUID, book_id: str, kind: str) -> Optional[SavedBookModel]:
        result = await self.session.execute(
            select(SavedBookModel).where(
                SavedBookModel.user_id == user_id,
                SavedBookModel.book_id == book_id,
                SavedBookModel.kind == kind,
            )
        )
        return result.scalar_one_or_none()

    async def add(self, saved: SavedBook) -> SavedBook:
        existing = await self._find(saved.user_id, saved.book_id, saved.kind)
        if existing:
            return self._to_entity(existing)
        db_saved = SavedBookModel(
            id=saved.id,
            user_id=saved.user_id,
            book_id=saved.book_id,
            kind=saved.kind,
            created_at=saved.created_at,
        )
        self.session.add(db_saved)
        await commit(self.session)
        await self.session.refresh(db_saved)
        return self._to_entity(db_saved)

    async def remove(self, user_id: UUID, book_id: str, kind: str) -> bool:
        db_saved = await self._find(user_id, book_id, kind)
        if db_saved:
            await self.session.delete(db_saved)
            await commit(self.session)
            return True
        return False

    async def list_for_user(self, user_id: UUID, kind: str) -> list[SavedBook]:
        result = await self.session.execute(
            select(SavedBookModel)
            .where(SavedBookModel.user_id == user_id, SavedBookModel.kind == kind)
            .order_by(SavedBookModel.created_at.desc())
        )
        return [self._to_entity(s) for s in result.scalars().all()]

    @staticmethod
    def _to_entity(model: SavedBookModel) -> SavedBook:
        return SavedBook(
            id=model.id,
            user_id=model.user_id,
            book_id=model.book_id,
            kind=model.kind,
            created_at=model.created_at,
        )


# ---------------------------------------------------------------------------
# History Repository
# ---------------------------------------------------------------------------
class HistoryRepository(IHistoryRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def record(self, entry: HistoryEntry) -> HistoryEntry:
        db_entry = HistoryModel(
            id=entry.id,
            user_id=entry.user_id,
            action=entry.action,
            book_id=entry.book_id,
            query=entry.query,
            options=entry.options,
            book_ids=list(entry.book_ids),
            created_at=entry.created_at,
        )
        self.session.add(db_entry)
        await commit(self.session)
        await self.session.refresh(db_entry)
        return self._to_entity(db_entry)

    async def get_by_id(self, entry_id: UUID) -> Optional[HistoryEntry]:
        db_entry = await self.session.get(HistoryModel, entry_id)
        return self._to_entity(db_entry) if db_entry else None

    async def list_for_user(
        self, user_id: UUID, action: Optional[str] = None, limit: int = 20
    ) -> list[HistoryEntry]:
        stmt = select(HistoryModel).where(HistoryModel.user_id == user_id)
        if action:
            stmt = stmt.where(HistoryModel.action == action)
        stmt = stmt.order_by(HistoryModel.created_at.desc()).limit(limit)
        result = await self.session.execute(stmt)
        return [self._to_entity(h) for h in result.scalars().all()]

    async def delete(self, entry_id: UUID) -> bool:
        db_entry = await self.session.get(HistoryModel, entry_id)
        if db_entry:
            await self.session.delete(db_entry)
            await commit(self.session)
            return True
        return False

    @staticmethod
    def _to_entity(model: HistoryModel) -> HistoryEntry:
        return HistoryEntry(
            id=model.id,
            user_id=model.user_id,
            action=model.action,
            book_id=model.book_id,
            query=model.query,
            options=model.options,
            book_ids=model.book_ids or [],
            created_at=model.created_at,
        )


# ---------------------------------------------------------------------------
# Chat Repository
# ---------------------------------------------------------------------------
class ChatRepository(IChatRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_session(self, session: ChatSession) -> ChatSession:
        db_session = ChatSessionModel(
            id=session.id,
            user_id=session.user_id,
            title=session.title,
            created_at=session.created_at,
            updated_at=session.updated_at,
        )
        self.session.add(db_session)
        await commit(self.session)
        await self.session.refresh(db_session)
        return self._session_to_entity(db_session)

    async def get_session(self, session_id: UUID) -> Optional[ChatSession]:
        db_session = await self.session.get(ChatSessionModel, session_id)
        return self._session_to_entity(db_session) if db_session else None

    async def list_sessions(self, user_id: UUID, limit: int = 20) -> list[ChatSession]:
        result = await self.session.execute(
            select(ChatSessionModel)
            .where(ChatSessionModel.user_id == user_id)
            .order_by(ChatSessionModel.updated_at.desc())
            .limit(limit)
        )
        return [self._session_to_entity(s) for s in result.scalars().all()]

    async def add_message(self, message: ChatMessage) -> ChatMessage:
        db_message = ChatMessageModel(
            id=message.id,
            session_id=message.session_id,
            sender=message.sender,
            content=message.content,
            recommendations=[book_to_json(b) for b in message.recommendations],
            options=dict(message.options),
            regenerated_from=message.regenerated_from,
            created_at=message.created_at,
        )
        self.session.add(db_message)
        db_session = await self.session.get(ChatSessionModel, message.session_id)
        if db_session:
            db_session.updated_at = datetime.utcnow()
        await commit(self.session)
        await self.session.refresh(db_message)
        return self._message_to_entity(db_message)

    async def get_message(self, message_id: UUID) -> Optional[ChatMessage]:
        db_message = await self.session.get(ChatMessageModel, message_id)
        return self._message_to_entity(db_message) if db_message else None

    async def list_messages(self, session_id: UUID) -> list[ChatMessage]:
        result = await self.session.execute(
            select(ChatMessageModel)
            .where(ChatMessageModel.session_id == session_id)
            .order_by(ChatMessageModel.created_at.asc())
        )
        return [self._message_to_entity(m) for m in result.scalars().all()]

    async def delete_session(self, session_id: UUID) -> bool:
        db_session = await self.session.get(ChatSessionModel, session_id)
        if db_session is None:
            return False
        await self.session.execute(
            delete(ChatMessageModel).where(ChatMessageModel.session_id == session_id)
        )
        await self.session.delete(db_session)
        await commit(self.session)
        return True

    @staticmethod
    def _session_to_entity(model: ChatSessionModel) -> ChatSession:
        return ChatSession(
            id=model.id,
            title=model.title,
            user_id=model.user_id,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    @staticmethod
    def _message_to_entity(model: ChatMessageModel) -> ChatMessage:
        return ChatMessage(
            id=model.id,
            session_id=model.session_id,
            sender=model.sender,
            content=model.content,
            recommendations=[book_from_json(b) for b in model.recommendations or []],
            options=model.options or {},
            regenerated_from=model.regenerated_from,
            created_at=model.created_at,
        )
