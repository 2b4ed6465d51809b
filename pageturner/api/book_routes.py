"""Book catalogue and review API routes."""

import logging
from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from pageturner.api.schemas import (
    BookListResponse,
    BookPageResponse,
    BookResponse,
    LengthBucket,
    RecommendationsResponse,
    ReviewCreate,
    ReviewResponse,
    ReviewUpdate,
    books_out,
)
from pageturner.core.config import settings
from pageturner.core.constants import MESSAGES
from pageturner.core.dependencies import (
    CurrentUser,
    get_book_repository,
    get_fallback_provider,
    get_recommendation_service,
    get_review_service,
    rate_limit,
)
from pageturner.core.errors import BookError, SearchError
from pageturner.domain.entities import SearchOptions
from pageturner.domain.repositories import IBookRepository
from pageturner.services.fallback import FallbackProvider
from pageturner.services.keyword_resolver import KeywordResolver
from pageturner.services.recommendation_service import RecommendationService
from pageturner.services.review_service import ReviewService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["books"])


@router.get("/books/popular", response_model=BookListResponse)
async def popular_books(
    fallback: Annotated[FallbackProvider, Depends(get_fallback_provider)],
    limit: int = Query(settings.popular_books_limit, ge=1, le=50),
) -> BookListResponse:
    books, _ = await fallback.popular(limit)
    return BookListResponse(books=books_out(books))


@router.get("/books/search", response_model=BookPageResponse)
async def search_titles(
    book_repo: Annotated[IBookRepository, Depends(get_book_repository)],
    q: str = Query(..., max_length=200),
    genre: Optional[str] = None,
    length: Optional[LengthBucket] = None,
    cursor: Optional[str] = None,
    limit: int = Query(settings.max_results, ge=1, le=50),
) -> BookPageResponse:
    """Title-prefix search with cursor pagination."""
    if not q.strip():
        raise SearchError(MESSAGES["search_empty"], code="search/empty-query")
    resolver = KeywordResolver(book_repo, page_size=limit)
    page = await resolver.resolve(q, SearchOptions(genre=genre, length=length), cursor=cursor)
    return BookPageResponse(
        books=books_out(page.items), next_cursor=page.next_cursor, has_more=page.has_more
    )


@router.get("/books/{book_id}", response_model=BookResponse)
async def get_book(
    book_id: str,
    book_repo: Annotated[IBookRepository, Depends(get_book_repository)],
) -> BookResponse:
    book = await book_repo.get_by_id(book_id)
    if not book:
        raise BookError(MESSAGES["book_not_found"], code="book/not-found")
    return BookResponse.model_validate(book)


@router.get(
    "/books/{book_id}/similar",
    response_model=RecommendationsResponse,
    dependencies=[Depends(rate_limit("similar", settings.recommendation_rate_limit))],
)
async def similar_books(
    book_id: str,
    recommendation_service: Annotated[RecommendationService, Depends(get_recommendation_service)],
) -> RecommendationsResponse:
    """Books like this one: ``cache``, ``database``, ``hybrid`` or ``database_fallback``."""
    books, source = await recommendation_service.similar(book_id)
    return RecommendationsResponse(books=books_out(books), source=source)


# ---------------------------------------------------------------------------
# Reviews
# ---------------------------------------------------------------------------
@router.get("/books/{book_id}/reviews", response_model=list[ReviewResponse])
async def list_reviews(
    book_id: str,
    review_service: Annotated[ReviewService, Depends(get_review_service)],
    limit: int = Query(10, ge=1, le=100),
) -> list[ReviewResponse]:
    reviews = await review_service.list_reviews(book_id, limit)
    return [ReviewResponse.model_validate(r) for r in reviews]


@router.post(
    "/books/{book_id}/reviews",
    response_model=ReviewResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_review(
    book_id: str,
    body: ReviewCreate,
    current_user: CurrentUser,
    review_service: Annotated[ReviewService, Depends(get_review_service)],
) -> ReviewResponse:
    try:
        review = await review_service.create_review(current_user.id, book_id, body.rating, body.text)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return ReviewResponse.model_validate(review)


@router.patch("/reviews/{review_id}", response_model=ReviewResponse)
async def update_review(
    review_id: UUID,
    body: ReviewUpdate,
    current_user: CurrentUser,
    review_service: Annotated[ReviewService, Depends(get_review_service)],
) -> ReviewResponse:
    try:
        review = await review_service.update_review(
            current_user.id, review_id, rating=body.rating, text=body.text
        )
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    return ReviewResponse.model_validate(review)


@router.delete("/reviews/{review_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_review(
    review_id: UUID,
    current_user: CurrentUser,
    review_service: Annotated[ReviewService, Depends(get_review_service)],
) -> Response:
    try:
        await review_service.delete_review(current_user.id, review_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
