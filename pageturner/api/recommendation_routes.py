"""Recommendation API routes."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from pageturner.api.schemas import RecommendationsResponse, books_out
from pageturner.core.config import settings
from pageturner.core.dependencies import OptionalUser, get_recommendation_service, rate_limit
from pageturner.services.recommendation_service import RecommendationService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["recommendations"])


@router.get(
    "/recommendations",
    response_model=RecommendationsResponse,
    dependencies=[Depends(rate_limit("recommendations", settings.recommendation_rate_limit))],
)
async def get_recommendations(
    current_user: OptionalUser,
    recommendation_service: Annotated[RecommendationService, Depends(get_recommendation_service)],
) -> RecommendationsResponse:
    """Home-page suggestions.

    Signed-in users get catalogue books in their favourite genres
    (``personalized``), else provider picks from their recent activity
    (``ai_personalized``); everyone else gets ``popular`` books.
    """
    books, source = await recommendation_service.for_user(current_user)
    return RecommendationsResponse(books=books_out(books), source=source)
