"""Search API routes."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query

from pageturner.api.schemas import SearchRequest, SearchResponse, TrendingResponse, books_out
from pageturner.core.config import settings
from pageturner.core.dependencies import (
    OptionalUser,
    get_search_service,
    get_search_stats_repository,
    rate_limit,
)
from pageturner.domain.entities import SearchOptions
from pageturner.domain.repositories import ISearchStatsRepository
from pageturner.services.search_service import SearchService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["search"])


@router.post(
    "/search-books",
    response_model=SearchResponse,
    dependencies=[Depends(rate_limit("search", settings.search_rate_limit))],
)
async def search_books(
    body: SearchRequest,
    current_user: OptionalUser,
    search_service: Annotated[SearchService, Depends(get_search_service)],
) -> SearchResponse:
    """Resolve a free-text query to books.

    ``source`` tells where the books came from: ``keyword`` (title index),
    ``cache`` or ``ai`` (provider), ``popular`` (fallback), or ``fallback``
    (static list, catalogue unreachable).
    """
    options = body.options.to_entity() if body.options else SearchOptions()
    outcome = await search_service.search(
        body.query, options, current_user, regenerate=body.regenerate
    )
    return SearchResponse(
        books=books_out(outcome.books),
        source=outcome.source,
        query=outcome.query,
        options=outcome.options,
    )


@router.get("/search/trending", response_model=TrendingResponse)
async def trending_searches(
    stats_repo: Annotated[ISearchStatsRepository, Depends(get_search_stats_repository)],
    limit: int = Query(10, ge=1, le=50),
) -> TrendingResponse:
    """Most frequent normalised queries."""
    return TrendingResponse(queries=await stats_repo.trending(limit))
