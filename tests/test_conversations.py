"""
Tests for the conversation store.
"""

import json

from partyline.conversations import ConversationStore
from partyline.storage.models import DEFAULT_TITLE, Message


def _stored(store) -> dict:
    return json.loads(store.slots.get(store.key))


def test_open_empty(store):
    assert store.conversations == []
    assert store.active_conversation_id is None
    assert store.active_messages == []


def test_open_writes_canonical_form_back(slots):
    """A legacy blob is migrated once and replaced by the canonical shape."""
    slots.set("chatHistory", json.dumps([{"role": "user", "content": "hi"}]))
    store = ConversationStore.open(slots)

    stored = json.loads(slots.get("chatHistory"))
    assert stored["activeConversationId"] == store.active_conversation_id
    assert stored["conversations"][0]["title"] == "hi"

    # Reopening takes the canonical path and keeps the same id
    again = ConversationStore.open(slots)
    assert again.active_conversation_id == store.active_conversation_id


def test_open_keeps_history_with_one_bad_message(slots):
    """A null message is dropped on its own; nothing else is lost on disk."""
    slots.set("chatHistory", json.dumps({
        "conversations": [
            {"id": "c1", "title": "One", "messages": [{"role": "user", "content": "important"}, None],
             "createdAt": "2024-01-01T00:00:00.000Z", "updatedAt": "2024-01-01T00:00:00.000Z"},
            {"id": "c2", "title": "Two", "messages": [{"role": "user", "content": "also"}],
             "createdAt": "2024-01-02T00:00:00.000Z", "updatedAt": "2024-01-02T00:00:00.000Z"},
        ],
        "activeConversationId": "c1",
    }))
    store = ConversationStore.open(slots)

    assert [c.id for c in store.conversations] == ["c1", "c2"]
    assert store.active_messages == [Message("user", "important")]

    stored = json.loads(slots.get("chatHistory"))
    assert [c["id"] for c in stored["conversations"]] == ["c1", "c2"]
    assert stored["conversations"][0]["messages"] == [{"role": "user", "content": "important"}]
    assert stored["activeConversationId"] == "c1"


def test_create_new_conversation(store):
    first = store.create_new_conversation()
    second = store.create_new_conversation()

    assert [c.id for c in store.conversations] == [second.id, first.id]
    assert store.active_conversation_id == second.id
    assert second.title == DEFAULT_TITLE
    assert second.messages == []
    assert _stored(store)["activeConversationId"] == second.id


def test_switch_conversation(store):
    first = store.create_new_conversation()
    store.create_new_conversation()
    store.switch_conversation(first.id)
    assert store.active_conversation_id == first.id


def test_switch_to_unknown_id_is_tolerated(store):
    """A dangling id is accepted and renders as an empty list."""
    conv = store.create_new_conversation()
    store.update_conversation_messages(conv.id, [Message("user", "hi")])
    store.switch_conversation("ghost")
    assert store.active_conversation_id == "ghost"
    assert store.active_conversation is None
    assert store.active_messages == []
    assert _stored(store)["activeConversationId"] == "ghost"


def test_update_title_bumps_updated_at(store):
    conv = store.create_new_conversation()
    assert store.update_conversation_title(conv.id, "Renamed")
    updated = store.get(conv.id)
    assert updated.title == "Renamed"
    assert updated.updated_at >= conv.updated_at
    assert _stored(store)["conversations"][0]["title"] == "Renamed"


def test_update_messages(store):
    conv = store.create_new_conversation()
    messages = [Message("user", "hi"), Message("assistant", "yo")]
    assert store.update_conversation_messages(conv.id, messages)
    assert store.active_messages == messages
    assert _stored(store)["conversations"][0]["messages"][1] == {"role": "assistant", "content": "yo"}


def test_updates_for_unknown_id_are_noops(store):
    store.create_new_conversation()
    before = store.data
    writes = []
    store.subscribe(writes.append)

    assert not store.update_conversation_title("ghost", "x")
    assert not store.update_conversation_messages("ghost", [])
    assert not store.append_to_message("ghost", 0, "x")
    assert store.data is before
    assert writes == []


def test_untargeted_conversations_unchanged(store):
    """Mutating one conversation leaves the others equal (and here, identical)."""
    a = store.create_new_conversation()
    store.update_conversation_messages(a.id, [Message("user", "a")])
    b = store.create_new_conversation()
    a_before = store.get(a.id)

    store.update_conversation_messages(b.id, [Message("user", "b")])
    store.update_conversation_title(b.id, "B")

    assert store.get(a.id) == a_before
    assert store.get(a.id) is a_before


def test_ensure_active_creates_when_missing(store):
    conv = store.ensure_active_conversation()
    assert store.active_conversation_id == conv.id
    assert store.ensure_active_conversation().id == conv.id

    store.switch_conversation("ghost")
    repaired = store.ensure_active_conversation()
    assert repaired.id != "ghost"
    assert store.active_conversation_id == repaired.id
    assert len(store.conversations) == 2


def test_append_to_message(store):
    conv = store.create_new_conversation()
    store.update_conversation_messages(conv.id, [Message("user", "q"), Message("assistant", "")])
    store.append_to_message(conv.id, 1, "Hel")
    store.append_to_message(conv.id, 1, "lo")
    assert store.get(conv.id).messages[1] == Message("assistant", "Hello")


def test_append_past_end_adds_assistant_message(store):
    conv = store.create_new_conversation()
    store.update_conversation_messages(conv.id, [Message("user", "q")])
    store.append_to_message(conv.id, 1, "late")
    assert store.get(conv.id).messages == [Message("user", "q"), Message("assistant", "late")]


def test_subscribe_and_unsubscribe(store):
    seen = []
    unsubscribe = store.subscribe(lambda data: seen.append(data.active_conversation_id))
    conv = store.create_new_conversation()
    unsubscribe()
    store.create_new_conversation()
    assert seen == [conv.id]


def test_export_matches_storage(store):
    conv = store.create_new_conversation()
    store.update_conversation_messages(conv.id, [Message("user", "hi")])
    assert store.export() == _stored(store)
