"""
Chat history storage: data models, the SQLite slot and legacy migration.
"""
from partyline.storage.models import ChatData, Conversation, Message
from partyline.storage.migration import migrate
from partyline.storage.slot_store import SlotStore

__all__ = [
    "ChatData",
    "Conversation",
    "Message",
    "SlotStore",
    "migrate",
]
