"""
Data models for chat history.
These define the shape of data held by the conversation store and written
to the storage slot. The serialized form uses camelCase keys so blobs
written by earlier versions of the app stay readable.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import uuid4

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "New Chat"
TITLE_MAX_CHARS = 50


def generate_id() -> str:
    return uuid4().hex


def _truncate_ms(dt: datetime) -> datetime:
    # Stored timestamps carry millisecond precision; keep memory in step so
    # a save/load cycle compares equal.
    return dt.replace(microsecond=(dt.microsecond // 1000) * 1000)


def utcnow() -> datetime:
    return _truncate_ms(datetime.now(timezone.utc))


def coerce_timestamp(value) -> datetime:
    """
    Turn a stored timestamp into an aware UTC datetime.
    Accepts datetimes, ISO 8601 strings (with or without a trailing Z) and
    epoch milliseconds. Missing or unparseable values become "now".
    """
    dt = None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool) and value:
        try:
            dt = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            dt = None
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            dt = None

    if dt is None:
        return utcnow()
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return _truncate_ms(dt.astimezone(timezone.utc))


def format_timestamp(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _content_str(content) -> str:
    if content is None:
        return ""
    return content if isinstance(content, str) else json.dumps(content)


@dataclass
class Message:
    """A single message in a conversation."""
    role: str = ""           # "user" or "assistant"
    content: str = ""
    extra: dict = field(default_factory=dict)  # unknown stored keys, round-tripped

    @classmethod
    def from_dict(cls, data: dict) -> Message:
        if not isinstance(data, dict):
            raise TypeError(f"message must be an object, got {type(data).__name__}")
        extra = {k: v for k, v in data.items() if k not in ("role", "content")}
        return cls(
            role=str(data.get("role", "")),
            content=_content_str(data.get("content")),
            extra=extra,
        )

    def to_dict(self) -> dict:
        return {**self.extra, "role": self.role, "content": self.content}

    def to_openai_format(self) -> dict:
        """The {role, content} pair sent to the model endpoint."""
        return {"role": self.role, "content": self.content}


def coerce_messages(items) -> list[Message]:
    """
    Build messages from a stored list, one element at a time.
    Objects map field for field. A null entry is dropped; any other scalar
    is kept as the content of a role-less message.
    """
    if items is None:
        return []
    if not isinstance(items, list):
        logger.warning("Ignoring stored messages of type %s", type(items).__name__)
        return []
    messages = []
    for pos, item in enumerate(items):
        if isinstance(item, dict):
            messages.append(Message.from_dict(item))
        elif item is None:
            logger.warning("Dropping null message at position %d", pos)
        else:
            logger.warning("Message at position %d is a %s, keeping it as text", pos, type(item).__name__)
            messages.append(Message(role="", content=_content_str(item)))
    return messages


def generate_title(messages: list[Message]) -> str:
    """First user message, clipped to TITLE_MAX_CHARS with an ellipsis."""
    first_user = next((m for m in messages if m.role == "user"), None)
    if first_user is None:
        return DEFAULT_TITLE
    preview = first_user.content[:TITLE_MAX_CHARS]
    if len(preview) < len(first_user.content):
        return f"{preview}..."
    return preview


_CONVERSATION_KEYS = ("id", "title", "messages", "createdAt", "updatedAt")


@dataclass
class Conversation:
    """A titled, ordered message thread."""
    id: str = field(default_factory=generate_id)
    title: str = DEFAULT_TITLE
    messages: list[Message] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> Conversation:
        """Build from a stored object, coercing timestamps."""
        if not isinstance(data, dict):
            raise TypeError(f"conversation must be an object, got {type(data).__name__}")
        messages = coerce_messages(data.get("messages"))
        title = data.get("title")
        return cls(
            id=str(data["id"]) if data.get("id") is not None else generate_id(),
            title=title if isinstance(title, str) else generate_title(messages),
            messages=messages,
            created_at=coerce_timestamp(data.get("createdAt")),
            updated_at=coerce_timestamp(data.get("updatedAt")),
            extra={k: v for k, v in data.items() if k not in _CONVERSATION_KEYS},
        )

    def to_dict(self) -> dict:
        return {
            **self.extra,
            "id": self.id,
            "title": self.title,
            "messages": [m.to_dict() for m in self.messages],
            "createdAt": format_timestamp(self.created_at),
            "updatedAt": format_timestamp(self.updated_at),
        }


@dataclass
class ChatData:
    """Every conversation (newest first) plus which one is on screen."""
    conversations: list[Conversation] = field(default_factory=list)
    active_conversation_id: str | None = None

    def find(self, conversation_id: str | None) -> Conversation | None:
        if conversation_id is None:
            return None
        for conv in self.conversations:
            if conv.id == conversation_id:
                return conv
        return None

    @property
    def active(self) -> Conversation | None:
        return self.find(self.active_conversation_id)

    def to_dict(self) -> dict:
        return {
            "conversations": [c.to_dict() for c in self.conversations],
            "activeConversationId": self.active_conversation_id,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)
