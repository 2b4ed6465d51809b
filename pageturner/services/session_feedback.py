"""Process-local record of like/dislike feedback on chat messages.

One store is built at startup and kept on ``app.state``; it is not shared
between worker processes and is lost on restart.
"""

from collections import defaultdict
from typing import Optional
from uuid import UUID


class SessionFeedbackStore:

    def __init__(self):
        self._feedback: dict[UUID, dict[UUID, dict[str, str]]] = defaultdict(dict)

    def record(self, chat_id: UUID, message_id: UUID, book_id: str, feedback: str) -> None:
        self._feedback[chat_id].setdefault(message_id, {})[book_id] = feedback

    def for_message(self, chat_id: UUID, message_id: UUID) -> dict[str, str]:
        return dict(self._feedback.get(chat_id, {}).get(message_id, {}))

    def for_chat(self, chat_id: UUID) -> dict[UUID, dict[str, str]]:
        return {m: dict(f) for m, f in self._feedback.get(chat_id, {}).items()}

    def get(self, chat_id: UUID, message_id: UUID, book_id: str) -> Optional[str]:
        return self.for_message(chat_id, message_id).get(book_id)

    def clear(self, chat_id: Optional[UUID] = None) -> None:
        if chat_id is None:
            self._feedback.clear()
        else:
            self._feedback.pop(chat_id, None)
