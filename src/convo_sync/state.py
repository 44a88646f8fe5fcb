"""
Conversation state — local cache of the chat list and the active chat's messages.

Single writer: only code running on the client's event loop mutates it, so
there is no locking. The remote store stays authoritative; messages appended
locally are provisional until a poll result contains them.
"""

from datetime import datetime
from typing import Iterable, Optional

from convo_sync.models.chat import Chat, Message


def _sorted_chats(chats: Iterable[Chat]) -> list[Chat]:
    unique: dict[str, Chat] = {}
    for chat in chats:
        unique[chat.id] = chat
    return sorted(unique.values(), key=lambda c: c.updated_at, reverse=True)


def _sorted_messages(messages: Iterable[Message]) -> list[Message]:
    unique: dict[str, Message] = {}
    for message in messages:
        unique.setdefault(message.id, message)
    # sorted() is stable, so equal timestamps keep their arrival order
    return sorted(unique.values(), key=lambda m: m.created_at)


class ConversationState:
    def __init__(self) -> None:
        self._chats: list[Chat] = []
        self._active_chat_id: Optional[str] = None
        self._messages: list[Message] = []
        self._provisional: dict[str, Message] = {}

    @property
    def chats(self) -> list[Chat]:
        return list(self._chats)

    @property
    def active_chat_id(self) -> Optional[str]:
        return self._active_chat_id

    @property
    def active_chat(self) -> Optional[Chat]:
        return self.find_chat(self._active_chat_id) if self._active_chat_id else None

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    def find_chat(self, chat_id: str) -> Optional[Chat]:
        for chat in self._chats:
            if chat.id == chat_id:
                return chat
        return None

    # Chats

    def set_chats(self, chats: Iterable[Chat]) -> None:
        self._chats = _sorted_chats(chats)

    def prepend_chat(self, chat: Chat) -> None:
        """A freshly created chat goes first regardless of clock skew."""
        self._chats = [chat] + [c for c in self._chats if c.id != chat.id]

    def touch_chat(self, chat_id: str, at: datetime) -> None:
        chat = self.find_chat(chat_id)
        if chat is None:
            return
        if at <= chat.updated_at:
            return
        bumped = chat.model_copy(update={"updated_at": at})
        self._chats = _sorted_chats([bumped] + [c for c in self._chats if c.id != chat_id])

    # Active chat

    def activate(self, chat_id: str) -> None:
        if chat_id != self._active_chat_id:
            self._messages = []
            self._provisional = {}
        self._active_chat_id = chat_id

    def deactivate(self) -> None:
        self._active_chat_id = None
        self._messages = []
        self._provisional = {}

    def append_message(self, message: Message) -> bool:
        """Apply a persisted message optimistically. Returns False if it does not belong here."""
        if message.chat_id != self._active_chat_id:
            return False
        if any(m.id == message.id for m in self._messages):
            return False
        self._provisional[message.id] = message
        self._messages = _sorted_messages(self._messages + [message])
        return True

    def replace_messages(self, chat_id: str, messages: Iterable[Message]) -> bool:
        """Merge a poll result. Returns False when the chat is no longer active."""
        if chat_id != self._active_chat_id:
            return False
        remote = list(messages)
        confirmed = {m.id for m in remote}
        for message_id in confirmed:
            self._provisional.pop(message_id, None)
        self._messages = _sorted_messages(remote + list(self._provisional.values()))
        return True

    def reset(self) -> None:
        self._chats = []
        self.deactivate()
