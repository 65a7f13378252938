"""
Shared fixtures: a temp SQLite slot and a conversation store on top of it.
"""

import pytest

from partyline.conversations import ConversationStore
from partyline.storage.slot_store import SlotStore


@pytest.fixture
def slots(tmp_path):
    """Fresh slot store in a temp directory."""
    return SlotStore(str(tmp_path / "partyline.db"))


@pytest.fixture
def store(slots):
    """Conversation store opened over an empty slot."""
    return ConversationStore.open(slots)
