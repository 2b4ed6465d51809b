"""Per-user API routes: profile, preferences, feedback, saved books and history."""

import logging
from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from pageturner.api.schemas import (
    BookListResponse,
    FeedbackRequest,
    FeedbackResponse,
    HistoryEntryResponse,
    HistoryResponse,
    PreferencesResponse,
    PreferencesUpdate,
    ProfileUpdateRequest,
    SavedBookRequest,
    UserResponse,
    books_out,
)
from pageturner.core.config import settings
from pageturner.core.constants import MESSAGES
from pageturner.core.dependencies import (
    CurrentUser,
    get_auth_service,
    get_library_service,
    get_preference_service,
    rate_limit,
)
from pageturner.services.auth_service import AuthService
from pageturner.services.library_service import LibraryService
from pageturner.services.preference_service import PreferenceService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["user"])

LibraryDep = Annotated[LibraryService, Depends(get_library_service)]


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------
@router.get("/user/profile", response_model=UserResponse)
async def get_profile(current_user: CurrentUser) -> UserResponse:
    return UserResponse.model_validate(current_user)


@router.put("/user/profile", response_model=UserResponse)
async def update_profile(
    body: ProfileUpdateRequest,
    current_user: CurrentUser,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> UserResponse:
    """Update the authenticated user's username and/or email."""
    try:
        updated = await auth_service.update_profile(current_user, body.username, body.email)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return UserResponse.model_validate(updated)


# ---------------------------------------------------------------------------
# Preferences & feedback
# ---------------------------------------------------------------------------
@router.get("/user/preferences", response_model=PreferencesResponse)
async def get_preferences(
    current_user: CurrentUser,
    preference_service: Annotated[PreferenceService, Depends(get_preference_service)],
) -> PreferencesResponse:
    prefs = await preference_service.get_preferences(current_user.id)
    return PreferencesResponse.model_validate(prefs)


@router.put("/user/preferences", response_model=PreferencesResponse)
async def update_preferences(
    body: PreferencesUpdate,
    current_user: CurrentUser,
    preference_service: Annotated[PreferenceService, Depends(get_preference_service)],
) -> PreferencesResponse:
    prefs = await preference_service.update_preferences(
        current_user.id,
        favorite_genres=body.favorite_genres,
        favorite_authors=body.favorite_authors,
        preferred_moods=body.preferred_moods,
        preferred_length=body.preferred_length,
    )
    return PreferencesResponse.model_validate(prefs)


@router.post(
    "/user/feedback",
    response_model=FeedbackResponse,
    dependencies=[Depends(rate_limit("feedback", settings.feedback_rate_limit))],
)
async def submit_feedback(
    body: FeedbackRequest,
    current_user: CurrentUser,
    preference_service: Annotated[PreferenceService, Depends(get_preference_service)],
) -> FeedbackResponse:
    """Like or dislike a catalogue book; likes also update favourite genres."""
    await preference_service.record_feedback(current_user.id, body.book_id, body.liked)
    return FeedbackResponse(
        message=MESSAGES["feedback_received"], book_id=body.book_id, liked=body.liked
    )


# ---------------------------------------------------------------------------
# Bookmarks, favourites & saved for later
# ---------------------------------------------------------------------------
def _saved_routes(path: str, kind: str) -> None:
    @router.get(f"/user/{path}", response_model=BookListResponse, name=f"list_{path}")
    async def list_saved(current_user: CurrentUser, library: LibraryDep) -> BookListResponse:
        return BookListResponse(books=books_out(await library.list_saved(current_user.id, kind)))

    @router.post(
        f"/user/{path}",
        response_model=BookListResponse,
        status_code=status.HTTP_201_CREATED,
        name=f"add_{path}",
    )
    async def add_saved(
        body: SavedBookRequest, current_user: CurrentUser, library: LibraryDep
    ) -> BookListResponse:
        await library.save(current_user.id, body.book_id, kind)
        return BookListResponse(books=books_out(await library.list_saved(current_user.id, kind)))

    @router.delete(
        f"/user/{path}/{{book_id}}",
        status_code=status.HTTP_204_NO_CONTENT,
        name=f"remove_{path}",
    )
    async def remove_saved(book_id: str, current_user: CurrentUser, library: LibraryDep) -> Response:
        if not await library.unsave(current_user.id, book_id, kind):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Book is not in your {path}")
        return Response(status_code=status.HTTP_204_NO_CONTENT)


_saved_routes("bookmarks", "bookmark")
_saved_routes("favorites", "favorite")
_saved_routes("saved-for-later", "saved_for_later")


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------
@router.get("/user/history", response_model=HistoryResponse)
async def get_history(
    current_user: CurrentUser,
    library: LibraryDep,
    action: Optional[str] = None,
    limit: int = Query(20, ge=1, le=100),
) -> HistoryResponse:
    entries = await library.history(current_user.id, action, limit)
    return HistoryResponse(entries=[HistoryEntryResponse.model_validate(e) for e in entries])


@router.delete("/history/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_history_entry(
    entry_id: UUID, current_user: CurrentUser, library: LibraryDep
) -> Response:
    try:
        await library.delete_history_entry(current_user.id, entry_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
