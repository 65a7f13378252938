"""
One-shot migration of stored chat history into the canonical ChatData shape.

Shapes seen in the wild, oldest first:
  1. a bare list of {role, content} messages (single-log format)
  2. a bare list of conversation objects
  3. {"conversations": [...], "activeConversationId": ...}  (current)

migrate() is pure: stored string in, ChatData out. It never raises. A bad
message or conversation inside a blob is skipped or kept as text on its
own; only a blob that is not JSON, or has no recognisable shape, is logged
and treated as empty history.
"""

from __future__ import annotations

import json
import logging

from partyline.storage.models import (
    ChatData,
    Conversation,
    coerce_messages,
    generate_id,
    generate_title,
    utcnow,
)

logger = logging.getLogger(__name__)


def _empty() -> ChatData:
    return ChatData(conversations=[], active_conversation_id=None)


def _is_conversation_list(parsed) -> bool:
    return (
        isinstance(parsed, list)
        and len(parsed) > 0
        and isinstance(parsed[0], dict)
        and "id" in parsed[0]
    )


def _conversations(items: list) -> list[Conversation]:
    conversations = []
    for pos, item in enumerate(items):
        if isinstance(item, dict):
            conversations.append(Conversation.from_dict(item))
        else:
            logger.warning("Skipping stored conversation %d: %s is not an object", pos, type(item).__name__)
    return conversations


def _from_conversation_list(items: list) -> ChatData:
    conversations = _conversations(items)
    active = conversations[0].id if items[0].get("id") else None
    return ChatData(conversations=conversations, active_conversation_id=active)


def _from_chat_data(obj: dict) -> ChatData:
    conversations = _conversations(obj["conversations"])
    active = obj.get("activeConversationId")
    # Kept even when it no longer resolves; the store tolerates a dangling id
    return ChatData(
        conversations=conversations,
        active_conversation_id=str(active) if active is not None else None,
    )


def _from_message_log(items: list) -> ChatData:
    messages = coerce_messages(items)
    now = utcnow()
    conversation = Conversation(
        id=generate_id(),
        title=generate_title(messages),
        messages=messages,
        created_at=now,
        updated_at=now,
    )
    return ChatData(conversations=[conversation], active_conversation_id=conversation.id)


def detect_shape(parsed) -> str:
    """Name the stored shape: conversations, chat_data, message_log or unknown."""
    if _is_conversation_list(parsed):
        return "conversations"
    if isinstance(parsed, dict) and isinstance(parsed.get("conversations"), list):
        return "chat_data"
    if isinstance(parsed, list) and len(parsed) > 0:
        return "message_log"
    return "unknown"


def migrate(raw: str | None) -> ChatData:
    """Convert any stored chat history blob into ChatData."""
    if not raw:
        return _empty()

    try:
        parsed = json.loads(raw)
        shape = detect_shape(parsed)
        if shape == "conversations":
            data = _from_conversation_list(parsed)
        elif shape == "chat_data":
            data = _from_chat_data(parsed)
        elif shape == "message_log":
            data = _from_message_log(parsed)
        else:
            return _empty()
    except (ValueError, TypeError, AttributeError, KeyError) as e:
        logger.warning("Failed to migrate stored chat history: %s", e)
        return _empty()

    if shape != "chat_data":
        logger.info(
            "Migrated legacy chat history (%s) into %d conversation(s)",
            shape, len(data.conversations),
        )
    return data
