"""Chat API routes."""

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from pageturner.api.schemas import (
    ChatCreateRequest,
    ChatCreateResponse,
    ChatDeleteResponse,
    ChatDetailResponse,
    ChatFeedbackRequest,
    ChatFeedbackResponse,
    ChatMessageResponse,
    ChatRegenerateRequest,
    ChatRegenerateResponse,
    ChatSessionListResponse,
    ChatSessionResponse,
    books_out,
)
from pageturner.core.config import settings
from pageturner.core.dependencies import (
    CurrentUser,
    OptionalUser,
    get_chat_service,
    get_feedback_store,
    rate_limit,
)
from pageturner.services.chat_service import ChatService
from pageturner.services.session_feedback import SessionFeedbackStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/chat", tags=["chat"])


@router.post(
    "/create",
    response_model=ChatCreateResponse,
    dependencies=[Depends(rate_limit("search", settings.search_rate_limit))],
)
async def create_chat(
    body: ChatCreateRequest,
    current_user: OptionalUser,
    chat_service: Annotated[ChatService, Depends(get_chat_service)],
) -> ChatCreateResponse:
    options = body.options.to_entity() if body.options else None
    session, reply = await chat_service.create(body.message, options, current_user)
    return ChatCreateResponse(
        chat_id=session.id,
        message=reply.content,
        recommendations=books_out(reply.recommendations),
    )


@router.get("/sessions", response_model=ChatSessionListResponse)
async def list_sessions(
    current_user: CurrentUser,
    chat_service: Annotated[ChatService, Depends(get_chat_service)],
) -> ChatSessionListResponse:
    sessions = await chat_service.list_sessions(current_user.id)
    return ChatSessionListResponse(
        sessions=[ChatSessionResponse.model_validate(s) for s in sessions]
    )


@router.get("/sessions/{chat_id}", response_model=ChatDetailResponse)
async def get_session(
    chat_id: UUID,
    current_user: CurrentUser,
    chat_service: Annotated[ChatService, Depends(get_chat_service)],
    feedback_store: Annotated[SessionFeedbackStore, Depends(get_feedback_store)],
) -> ChatDetailResponse:
    try:
        session, messages = await chat_service.get_session(current_user.id, chat_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    return ChatDetailResponse(
        session=ChatSessionResponse.model_validate(session),
        messages=[
            ChatMessageResponse(
                id=m.id,
                sender=m.sender,
                content=m.content,
                recommendations=books_out(m.recommendations),
                feedback=feedback_store.for_message(chat_id, m.id),
                options=m.options,
                regenerated_from=m.regenerated_from,
                created_at=m.created_at,
            )
            for m in messages
        ],
    )


@router.post(
    "/feedback",
    response_model=ChatFeedbackResponse,
    dependencies=[Depends(rate_limit("feedback", settings.feedback_rate_limit))],
)
async def chat_feedback(
    body: ChatFeedbackRequest,
    current_user: OptionalUser,
    chat_service: Annotated[ChatService, Depends(get_chat_service)],
) -> ChatFeedbackResponse:
    """Like or dislike one recommended book in a chat reply."""
    try:
        await chat_service.feedback(
            body.chat_id, body.message_id, body.book_id, body.feedback, current_user
        )
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    return ChatFeedbackResponse(
        message=f"Feedback '{body.feedback}' recorded for book {body.book_id}"
    )


@router.post(
    "/regenerate",
    response_model=ChatRegenerateResponse,
    dependencies=[Depends(rate_limit("search", settings.search_rate_limit))],
)
async def regenerate(
    body: ChatRegenerateRequest,
    current_user: OptionalUser,
    chat_service: Annotated[ChatService, Depends(get_chat_service)],
) -> ChatRegenerateResponse:
    """Answer a user message again with fresh recommendations."""
    options = body.options.to_entity() if body.options else None
    try:
        reply = await chat_service.regenerate(body.chat_id, body.message_id, options, current_user)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    return ChatRegenerateResponse(
        message=reply.content,
        recommendations=books_out(reply.recommendations),
        message_id=reply.id,
    )


@router.delete("/delete", response_model=ChatDeleteResponse)
async def delete_chat(
    current_user: OptionalUser,
    chat_service: Annotated[ChatService, Depends(get_chat_service)],
    chat_id: UUID = Query(..., alias="chatId"),
) -> ChatDeleteResponse:
    try:
        await chat_service.delete(chat_id, current_user)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    return ChatDeleteResponse(message="Chat and all associated messages deleted successfully")
