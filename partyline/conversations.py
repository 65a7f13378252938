"""
Conversation store: the in-memory source of truth for every conversation
and which one is active.

Every mutation builds a new ChatData snapshot, writes it to the storage
slot synchronously and then notifies subscribers. Conversations that a
mutation does not target are carried over untouched.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import replace
from typing import Callable

from partyline.storage.migration import migrate
from partyline.storage.models import (
    ChatData,
    Conversation,
    DEFAULT_TITLE,
    Message,
    generate_id,
    utcnow,
)
from partyline.storage.slot_store import SlotStore

logger = logging.getLogger(__name__)

Listener = Callable[[ChatData], None]


class ConversationStore:
    """Holds ChatData and persists it to a SlotStore after every change."""

    def __init__(self, slots: SlotStore, key: str = "chatHistory", data: ChatData | None = None):
        self.slots = slots
        self.key = key
        self._data = data if data is not None else ChatData()
        self._listeners: list[Listener] = []

    @classmethod
    def open(cls, slots: SlotStore, key: str = "chatHistory") -> ConversationStore:
        """
        Load the slot, migrate whatever shape it holds and write the
        canonical form back so the next start skips detection.
        """
        data = migrate(slots.get(key))
        store = cls(slots, key=key, data=data)
        store.persist()
        logger.info(
            "Loaded %d conversation(s), active=%s",
            len(data.conversations), data.active_conversation_id,
        )
        return store

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def data(self) -> ChatData:
        return self._data

    @property
    def conversations(self) -> list[Conversation]:
        return self._data.conversations

    @property
    def active_conversation_id(self) -> str | None:
        return self._data.active_conversation_id

    @property
    def active_conversation(self) -> Conversation | None:
        return self._data.active

    @property
    def active_messages(self) -> list[Message]:
        """Messages of the active conversation; empty if the id dangles."""
        conv = self._data.active
        return list(conv.messages) if conv else []

    def get(self, conversation_id: str) -> Conversation | None:
        return self._data.find(conversation_id)

    def export(self) -> dict:
        return self._data.to_dict()

    # ------------------------------------------------------------------
    # Persistence / notification
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener. Returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def persist(self):
        try:
            self.slots.set(self.key, self._data.to_json())
        except (sqlite3.Error, OSError) as e:
            logger.error("Failed to persist chat history to %s: %s", self.slots.db_path, e)
            raise

    def _commit(self, data: ChatData):
        self._data = data
        self.persist()
        for listener in list(self._listeners):
            listener(data)

    def _map_conversation(self, conversation_id: str, fn: Callable[[Conversation], Conversation]) -> bool:
        """Apply fn to one conversation. Returns False if it isn't there."""
        if self._data.find(conversation_id) is None:
            return False
        conversations = [
            fn(conv) if conv.id == conversation_id else conv
            for conv in self._data.conversations
        ]
        self._commit(replace(self._data, conversations=conversations))
        return True

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_new_conversation(self) -> Conversation:
        """Prepend an empty conversation and make it active."""
        now = utcnow()
        conversation = Conversation(
            id=generate_id(),
            title=DEFAULT_TITLE,
            messages=[],
            created_at=now,
            updated_at=now,
        )
        self._commit(ChatData(
            conversations=[conversation, *self._data.conversations],
            active_conversation_id=conversation.id,
        ))
        logger.debug("Created conversation %s", conversation.id)
        return conversation

    def switch_conversation(self, conversation_id: str):
        """Set the active id. Not validated: an unknown id renders empty."""
        self._commit(replace(self._data, active_conversation_id=conversation_id))

    def ensure_active_conversation(self) -> Conversation:
        """Return the active conversation, creating one if none resolves."""
        conv = self._data.active
        if conv is None:
            conv = self.create_new_conversation()
        return conv

    def update_conversation_title(self, conversation_id: str, title: str) -> bool:
        return self._map_conversation(
            conversation_id,
            lambda conv: replace(conv, title=title, updated_at=utcnow()),
        )

    def update_conversation_messages(self, conversation_id: str, messages: list[Message]) -> bool:
        return self._map_conversation(
            conversation_id,
            lambda conv: replace(conv, messages=list(messages), updated_at=utcnow()),
        )

    def append_to_message(self, conversation_id: str, index: int, text: str) -> bool:
        """
        Append text to message `index` of a conversation. A missing index is
        filled with a new assistant message. No-op if the conversation is gone.
        """
        def grow(conv: Conversation) -> Conversation:
            messages = list(conv.messages)
            if index < len(messages):
                current = messages[index]
                messages[index] = replace(current, content=current.content + text)
            else:
                messages.append(Message(role="assistant", content=text))
            return replace(conv, messages=messages, updated_at=utcnow())

        return self._map_conversation(conversation_id, grow)
