"""Dependency injection container.

Process-wide objects (session factory, LLM provider, session feedback
store) are built in ``main.lifespan`` and kept on ``app.state``; the
providers below hand them to request handlers.
"""

import logging
from typing import Annotated, Optional
from uuid import UUID

import redis.asyncio as aioredis
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession

from pageturner.core.config import settings
from pageturner.core.redis_client import get_redis, hit_rate_limit, is_token_revoked
from pageturner.core.security import decode_access_token
from pageturner.domain.entities import User
from pageturner.domain.repositories import (
    IBookRepository,
    IChatRepository,
    IFeedbackStatsRepository,
    IHistoryRepository,
    ILLMService,
    IReviewRepository,
    ISavedBookRepository,
    ISearchCacheRepository,
    ISearchStatsRepository,
    ISimilarBooksRepository,
    IUserPreferenceRepository,
    IUserRepository,
)
from pageturner.infrastructure.database.connection import get_db
from pageturner.infrastructure.database.repository import (
    BookRepository,
    ChatRepository,
    FeedbackStatsRepository,
    HistoryRepository,
    ReviewRepository,
    SavedBookRepository,
    SearchCacheRepository,
    SearchStatsRepository,
    SimilarBooksRepository,
    UserPreferenceRepository,
    UserRepository,
)
from pageturner.services.ai_resolver import AIResolver
from pageturner.services.auth_service import AuthService
from pageturner.services.chat_service import ChatService
from pageturner.services.fallback import FallbackProvider
from pageturner.services.keyword_resolver import KeywordResolver
from pageturner.services.library_service import LibraryService
from pageturner.services.preference_service import PreferenceService
from pageturner.services.recommendation_service import RecommendationService
from pageturner.services.review_service import ReviewService
from pageturner.services.search_cache import SearchCache
from pageturner.services.search_service import QueryRouter, SearchService
from pageturner.services.session_feedback import SessionFeedbackStore

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)

SessionDep = Annotated[AsyncSession, Depends(get_db)]


# ---------------------------------------------------------------------------
# Infrastructure providers
# ---------------------------------------------------------------------------
def get_llm_service(request: Request) -> ILLMService:
    """Return the provider built at startup."""
    return request.app.state.llm_service


def get_feedback_store(request: Request) -> SessionFeedbackStore:
    return request.app.state.feedback_store


# ---------------------------------------------------------------------------
# Repository providers
# ---------------------------------------------------------------------------
async def get_user_repository(session: SessionDep) -> IUserRepository:
    return UserRepository(session)


async def get_book_repository(session: SessionDep) -> IBookRepository:
    return BookRepository(session)


async def get_search_cache_repository(session: SessionDep) -> ISearchCacheRepository:
    return SearchCacheRepository(session)


async def get_similar_books_repository(session: SessionDep) -> ISimilarBooksRepository:
    return SimilarBooksRepository(session)


async def get_search_stats_repository(session: SessionDep) -> ISearchStatsRepository:
    return SearchStatsRepository(session)


async def get_review_repository(session: SessionDep) -> IReviewRepository:
    return ReviewRepository(session)


async def get_preference_repository(session: SessionDep) -> IUserPreferenceRepository:
    return UserPreferenceRepository(session)


async def get_feedback_stats_repository(session: SessionDep) -> IFeedbackStatsRepository:
    return FeedbackStatsRepository(session)


async def get_saved_book_repository(session: SessionDep) -> ISavedBookRepository:
    return SavedBookRepository(session)


async def get_history_repository(session: SessionDep) -> IHistoryRepository:
    return HistoryRepository(session)


async def get_chat_repository(session: SessionDep) -> IChatRepository:
    return ChatRepository(session)


# ---------------------------------------------------------------------------
# Service providers
# ---------------------------------------------------------------------------
async def get_fallback_provider(
    book_repo: IBookRepository = Depends(get_book_repository),
) -> FallbackProvider:
    return FallbackProvider(book_repo, limit=settings.popular_books_limit)


async def get_ai_resolver(
    llm: ILLMService = Depends(get_llm_service),
    cache_repo: ISearchCacheRepository = Depends(get_search_cache_repository),
) -> AIResolver:
    return AIResolver(
        llm,
        SearchCache(cache_repo, settings.search_cache_duration_seconds),
        max_tokens=settings.llm_max_tokens,
        temperature=settings.llm_temperature,
        timeout=settings.llm_timeout_seconds,
    )


async def get_search_service(
    book_repo: IBookRepository = Depends(get_book_repository),
    stats_repo: ISearchStatsRepository = Depends(get_search_stats_repository),
    history_repo: IHistoryRepository = Depends(get_history_repository),
    pref_repo: IUserPreferenceRepository = Depends(get_preference_repository),
    ai_resolver: AIResolver = Depends(get_ai_resolver),
    fallback: FallbackProvider = Depends(get_fallback_provider),
) -> SearchService:
    return SearchService(
        router=QueryRouter(settings.min_search_length),
        keyword_resolver=KeywordResolver(book_repo, page_size=settings.max_results),
        ai_resolver=ai_resolver,
        fallback=fallback,
        book_repository=book_repo,
        stats_repository=stats_repo,
        history_repository=history_repo,
        preference_repository=pref_repo,
        persist_ai_books=settings.persist_ai_books,
        max_results=settings.max_results,
    )


async def get_recommendation_service(
    book_repo: IBookRepository = Depends(get_book_repository),
    pref_repo: IUserPreferenceRepository = Depends(get_preference_repository),
    history_repo: IHistoryRepository = Depends(get_history_repository),
    similar_repo: ISimilarBooksRepository = Depends(get_similar_books_repository),
    ai_resolver: AIResolver = Depends(get_ai_resolver),
    fallback: FallbackProvider = Depends(get_fallback_provider),
) -> RecommendationService:
    return RecommendationService(
        book_repository=book_repo,
        preference_repository=pref_repo,
        history_repository=history_repo,
        similar_repository=similar_repo,
        ai_resolver=ai_resolver,
        fallback=fallback,
        recommendation_count=settings.recommendation_count,
        popular_limit=settings.popular_books_limit,
        cache_duration_seconds=settings.search_cache_duration_seconds,
    )


async def get_review_service(
    review_repo: IReviewRepository = Depends(get_review_repository),
    book_repo: IBookRepository = Depends(get_book_repository),
    history_repo: IHistoryRepository = Depends(get_history_repository),
) -> ReviewService:
    return ReviewService(review_repo, book_repo, history_repo)


async def get_preference_service(
    pref_repo: IUserPreferenceRepository = Depends(get_preference_repository),
    feedback_repo: IFeedbackStatsRepository = Depends(get_feedback_stats_repository),
    book_repo: IBookRepository = Depends(get_book_repository),
    history_repo: IHistoryRepository = Depends(get_history_repository),
) -> PreferenceService:
    return PreferenceService(
        preference_repo=pref_repo,
        feedback_repo=feedback_repo,
        book_repo=book_repo,
        history_repo=history_repo,
    )


async def get_library_service(
    saved_repo: ISavedBookRepository = Depends(get_saved_book_repository),
    book_repo: IBookRepository = Depends(get_book_repository),
    history_repo: IHistoryRepository = Depends(get_history_repository),
) -> LibraryService:
    return LibraryService(saved_repo, book_repo, history_repo)


async def get_chat_service(
    chat_repo: IChatRepository = Depends(get_chat_repository),
    search_service: SearchService = Depends(get_search_service),
    preference_service: PreferenceService = Depends(get_preference_service),
    feedback_store: SessionFeedbackStore = Depends(get_feedback_store),
) -> ChatService:
    return ChatService(chat_repo, search_service, preference_service, feedback_store)


async def get_auth_service(
    user_repo: IUserRepository = Depends(get_user_repository),
) -> AuthService:
    return AuthService(user_repository=user_repo)


# ---------------------------------------------------------------------------
# Auth dependencies
# ---------------------------------------------------------------------------
async def _resolve_user(
    token: str, user_repo: IUserRepository, redis_client: aioredis.Redis
) -> Optional[User]:
    """Return the active user the token belongs to, or None."""
    payload = decode_access_token(token)
    if payload is None:
        return None
    jti: str | None = payload.get("jti")
    if jti and await is_token_revoked(redis_client, jti):
        return None
    try:
        user_id = UUID(payload.get("sub") or "")
    except ValueError:
        return None
    user = await user_repo.get_by_id(user_id)
    if user is None or not user.is_active:
        return None
    return user


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    user_repo: IUserRepository = Depends(get_user_repository),
    redis_client: aioredis.Redis = Depends(get_redis),
) -> User:
    """Decode JWT and return the authenticated user.

    Rejects tokens whose ``jti`` has been written to the Redis revocation
    blacklist (i.e. the user has logged out).
    """
    user = await _resolve_user(token, user_repo, redis_client)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def get_optional_user(
    token: Optional[str] = Depends(optional_oauth2_scheme),
    user_repo: IUserRepository = Depends(get_user_repository),
    redis_client: aioredis.Redis = Depends(get_redis),
) -> Optional[User]:
    """Like :func:`get_current_user` but anonymous requests get ``None``."""
    if not token:
        return None
    return await _resolve_user(token, user_repo, redis_client)


CurrentUser = Annotated[User, Depends(get_current_user)]
OptionalUser = Annotated[Optional[User], Depends(get_optional_user)]


# ---------------------------------------------------------------------------
# Rate limiting
# ---------------------------------------------------------------------------
def rate_limit(scope: str, limit: int):
    """Build a dependency allowing ``limit`` requests per client per minute."""

    async def dependency(
        request: Request,
        redis_client: aioredis.Redis = Depends(get_redis),
    ) -> None:
        client_id = request.client.host if request.client else "anonymous"
        try:
            limited = await hit_rate_limit(redis_client, scope, client_id, limit)
        except RedisError as exc:
            logger.warning("Rate limiter unavailable, allowing request: %s", exc)
            return
        if limited:
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many requests. Please try again later.",
                headers={"Retry-After": "60"},
            )

    return dependency
