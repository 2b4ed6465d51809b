"""Chat sessions: each message is answered with search recommendations."""

import logging
from typing import Optional
from uuid import UUID, uuid4

from pageturner.core.errors import BookError
from pageturner.domain.entities import ChatMessage, ChatSession, SearchOptions, User
from pageturner.domain.repositories import IChatRepository
from pageturner.services.preference_service import PreferenceService
from pageturner.services.search_service import SearchService
from pageturner.services.session_feedback import SessionFeedbackStore

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 30


def session_title(message: str) -> str:
    return message if len(message) <= TITLE_MAX_LENGTH else f"{message[:TITLE_MAX_LENGTH]}..."


class ChatService:

    def __init__(
        self,
        chat_repository: IChatRepository,
        search_service: SearchService,
        preference_service: PreferenceService,
        feedback_store: SessionFeedbackStore,
    ):
        self.chat_repository = chat_repository
        self.search_service = search_service
        self.preference_service = preference_service
        self.feedback_store = feedback_store

    async def create(
        self, message: str, options: Optional[SearchOptions], user: Optional[User]
    ) -> tuple[ChatSession, ChatMessage]:
        """Open a session, answer ``message`` and store both turns."""
        outcome = await self.search_service.search(message, options, user)
        session = await self.chat_repository.create_session(
            ChatSession(id=uuid4(), title=session_title(message), user_id=user.id if user else None)
        )
        await self.chat_repository.add_message(
            ChatMessage(
                id=uuid4(),
                session_id=session.id,
                sender="user",
                content=message,
                options=options.as_dict() if options else {},
            )
        )
        reply = await self.chat_repository.add_message(
            ChatMessage(
                id=uuid4(),
                session_id=session.id,
                sender="assistant",
                content=f'Here are some book recommendations based on your query: "{message}"',
                recommendations=outcome.books,
            )
        )
        logger.info("Chat %s opened with %d recommendations (%s)", session.id, len(outcome.books), outcome.source)
        return session, reply

    async def list_sessions(self, user_id: UUID) -> list[ChatSession]:
        return await self.chat_repository.list_sessions(user_id)

    async def get_session(self, user_id: UUID, session_id: UUID) -> tuple[ChatSession, list[ChatMessage]]:
        session = await self.chat_repository.get_session(session_id)
        if session is None:
            raise LookupError("Chat not found")
        if session.user_id != user_id:
            raise PermissionError("You can only view your own chats")
        return session, await self.chat_repository.list_messages(session_id)

    async def _open_session(self, chat_id: UUID, user: Optional[User]) -> ChatSession:
        """Return the session, enforcing its owner when it has one."""
        session = await self.chat_repository.get_session(chat_id)
        if session is None:
            raise LookupError("Chat not found")
        if session.user_id is not None and (user is None or user.id != session.user_id):
            raise PermissionError("You can only change your own chats")
        return session

    async def _message_in(self, chat_id: UUID, message_id: UUID) -> ChatMessage:
        message = await self.chat_repository.get_message(message_id)
        if message is None or message.session_id != chat_id:
            raise LookupError("Message not found")
        return message

    async def regenerate(
        self,
        chat_id: UUID,
        message_id: UUID,
        options: Optional[SearchOptions],
        user: Optional[User],
    ) -> ChatMessage:
        """Answer a stored user message again, bypassing the search cache.

        ``options`` overlay the options the message was first sent with.
        """
        await self._open_session(chat_id, user)
        original = await self._message_in(chat_id, message_id)
        if original.sender != "user":
            raise ValueError("Only user messages can be regenerated")

        merged = SearchOptions(**{**original.options, **(options.as_dict() if options else {})})
        outcome = await self.search_service.search(original.content, merged, user, regenerate=True)
        reply = await self.chat_repository.add_message(
            ChatMessage(
                id=uuid4(),
                session_id=chat_id,
                sender="assistant",
                content=f'Here are some refreshed book recommendations based on your query: "{original.content}"',
                recommendations=outcome.books,
                options=merged.as_dict(),
                regenerated_from=message_id,
            )
        )
        logger.info("Chat %s message %s regenerated (%s)", chat_id, message_id, outcome.source)
        return reply

    async def delete(self, chat_id: UUID, user: Optional[User]) -> None:
        await self._open_session(chat_id, user)
        await self.chat_repository.delete_session(chat_id)
        self.feedback_store.clear(chat_id)
        logger.info("Chat %s deleted", chat_id)

    async def feedback(
        self,
        chat_id: UUID,
        message_id: UUID,
        book_id: str,
        feedback: str,
        user: Optional[User],
    ) -> None:
        """Record a like/dislike on one recommended book of a message."""
        await self._open_session(chat_id, user)
        await self._message_in(chat_id, message_id)
        self.feedback_store.record(chat_id, message_id, book_id, feedback)
        if user:
            try:
                await self.preference_service.record_feedback(user.id, book_id, feedback == "like")
            except BookError:
                # Recommendation never reached the catalogue; session store only
                logger.info("Feedback on uncatalogued book %s kept in session only", book_id)
