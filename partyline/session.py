"""
Chat session — drives one streamed reply at a time.

    IDLE ─send()─▶ REQUESTING ─headers─▶ STREAMING ─▶ COMPLETED
                        │                    │
                        ├──────────────┬─────┴──▶ CANCELLED  (cancel(), or an abort)
                        └──────────────┴────────▶ FAILED     (HTTP error / transport error)

send() writes the outgoing message list to the store before the request
goes out, appends an empty assistant placeholder once the endpoint answers,
and grows that placeholder through a RenderBuffer as frames arrive. Every
write during the stream targets the conversation captured at send time,
so switching conversations mid-reply is safe.

User cancel (cancel()) is silent: whatever was already flushed stays and
nothing is added. An abort that surfaces any other way is reported in the
transcript as "[cancelled]".
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import replace
from typing import Callable

import httpx

from partyline.backends.base import BaseBackend
from partyline.conversations import ConversationStore
from partyline.events import EventDecoder, parse_event
from partyline.render_buffer import DEFAULT_FLUSH_DELAY, RenderBuffer
from partyline.storage.models import Message, generate_title
from partyline.wiretap import WireLog

logger = logging.getLogger(__name__)

CANCELLED_TEXT = "[cancelled]"


class StreamState(enum.Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    STREAMING = "streaming"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


_BUSY_STATES = (StreamState.REQUESTING, StreamState.STREAMING)


def _is_abort(exc: BaseException) -> bool:
    return isinstance(exc, asyncio.CancelledError) or "aborted" in str(exc).lower()


class ChatSession:
    """Sends the active conversation to a backend and streams the reply into the store."""

    def __init__(
        self,
        store: ConversationStore,
        backend: BaseBackend,
        flush_delay: float = DEFAULT_FLUSH_DELAY,
        wire: WireLog | None = None,
    ):
        self.store = store
        self.backend = backend
        self.flush_delay = flush_delay
        self.wire = wire
        self.state = StreamState.IDLE
        self.editing_index: int | None = None
        self._task: asyncio.Task | None = None
        self._buffer: RenderBuffer | None = None
        self._user_cancelled = False
        self._listeners: list[Callable[[StreamState], None]] = []

    @property
    def busy(self) -> bool:
        return self.state in _BUSY_STATES

    def subscribe(self, listener: Callable[[StreamState], None]) -> Callable[[], None]:
        """Register a state-change listener. Returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_state(self, state: StreamState):
        if state is self.state:
            return
        logger.debug("Session state %s -> %s", self.state.value, state.value)
        self.state = state
        for listener in list(self._listeners):
            listener(state)

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def start_edit(self, index: int) -> str | None:
        """
        Mark a user message of the active conversation for resubmission.
        Returns its content for the input box, or None if it can't be edited.
        """
        if self.busy:
            return None
        messages = self.store.active_messages
        if not 0 <= index < len(messages) or messages[index].role != "user":
            return None
        self.editing_index = index
        return messages[index].content

    def cancel_edit(self):
        self.editing_index = None

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    def _next_messages(self, current: list[Message], text: str, edit_index: int | None) -> list[Message]:
        if edit_index is None:
            return [*current, Message(role="user", content=text)]
        if not 0 <= edit_index < len(current):
            raise IndexError(f"edit index {edit_index} out of range for {len(current)} messages")
        # Everything after the edited message is discarded
        messages = current[:edit_index + 1]
        messages[edit_index] = replace(messages[edit_index], content=text)
        return messages

    async def send(self, text: str, edit_index: int | None = None) -> bool:
        """
        Send text as a new user message, or as a rewrite of message
        edit_index (falling back to a pending start_edit()). Returns False
        if nothing was sent because the input is blank or a reply is in flight.
        """
        if not text.strip() or self.busy:
            return False

        if edit_index is None:
            edit_index = self.editing_index

        conversation = self.store.ensure_active_conversation()
        conversation_id = conversation.id
        sent = self._next_messages(list(conversation.messages), text, edit_index)
        self.editing_index = None

        self.store.update_conversation_messages(conversation_id, sent)
        if len(sent) == 1 and sent[0].role == "user":
            self.store.update_conversation_title(conversation_id, generate_title(sent))

        self._user_cancelled = False
        self._set_state(StreamState.REQUESTING)
        self._wire_log("outbound", "user", sent[-1].content, conversation_id)

        self._task = asyncio.create_task(self._run(conversation_id, sent))
        try:
            await self._task
        except asyncio.CancelledError:
            if not self._user_cancelled:
                raise
        finally:
            self._task = None
        return True

    def cancel(self) -> bool:
        """Stop the reply in flight. Flushed text stays; nothing is appended."""
        if not self.busy:
            return False
        self._user_cancelled = True
        if self._buffer is not None:
            self._buffer.cancel()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._set_state(StreamState.CANCELLED)
        logger.info("Reply cancelled by user")
        return True

    # ------------------------------------------------------------------
    # Request lifecycle
    # ------------------------------------------------------------------

    async def _run(self, conversation_id: str, sent: list[Message]):
        reply_index = len(sent)
        buffer = RenderBuffer(
            lambda text: self.store.append_to_message(conversation_id, reply_index, text),
            delay=self.flush_delay,
        )
        self._buffer = buffer
        payload = [m.to_openai_format() for m in sent]

        try:
            async with self.backend.stream_chat(payload) as resp:
                if not resp.is_success:
                    body = (await resp.aread()).decode("utf-8", errors="replace")
                    self._report(
                        conversation_id, sent,
                        f"Error: {resp.status_code} {resp.reason_phrase} - {body}",
                    )
                    logger.warning("Chat endpoint answered HTTP %d", resp.status_code)
                    self._set_state(StreamState.FAILED)
                    return

                self.store.update_conversation_messages(
                    conversation_id, [*sent, Message(role="assistant", content="")]
                )
                self._set_state(StreamState.STREAMING)
                await self._consume(resp, buffer)

            self._set_state(StreamState.COMPLETED)
            self._log_reply(conversation_id, reply_index)
        except asyncio.CancelledError:
            buffer.cancel()
            if not self._user_cancelled:
                self._report(conversation_id, sent, CANCELLED_TEXT)
                self._set_state(StreamState.CANCELLED)
            raise
        except Exception as e:
            if _is_abort(e):
                self._report(conversation_id, sent, CANCELLED_TEXT)
                self._set_state(StreamState.CANCELLED)
            else:
                logger.warning("Chat request failed: %s", e)
                self._report(conversation_id, sent, f"Network error: {e}")
                self._set_state(StreamState.FAILED)
        finally:
            buffer.cancel()
            self._buffer = None

    async def _consume(self, resp: httpx.Response, buffer: RenderBuffer):
        """Pull chunks until a done frame or the end of the body."""
        decoder = EventDecoder()
        async for chunk in resp.aiter_bytes():
            for frame in decoder.feed(chunk):
                event = parse_event(frame)
                if event is None:
                    continue
                if event.is_error:
                    logger.warning("Chat endpoint sent an error frame: %s", event.text.strip())
                if event.text:
                    buffer.accumulate(event.text)
                if event.done:
                    buffer.flush()
                    return
        # Body ended without a done frame; keep whatever is still buffered
        tail = decoder.close()
        event = parse_event(tail) if tail is not None else None
        if event is not None and event.text:
            buffer.accumulate(event.text)
        buffer.flush()

    def _report(self, conversation_id: str, sent: list[Message], text: str):
        """Replace everything from the send point on with one assistant message."""
        conversation = self.store.get(conversation_id)
        current = conversation.messages if conversation else sent
        self.store.update_conversation_messages(
            conversation_id,
            [*current[:len(sent)], Message(role="assistant", content=text)],
        )
        self._wire_log("inbound", "error", text, conversation_id)

    def _log_reply(self, conversation_id: str, reply_index: int):
        conversation = self.store.get(conversation_id)
        if conversation and reply_index < len(conversation.messages):
            self._wire_log("inbound", "assistant", conversation.messages[reply_index].content, conversation_id)

    def _wire_log(self, direction: str, role: str, content: str, conversation_id: str):
        if self.wire is None:
            return
        self.wire.log(
            direction=direction,
            role=role,
            content=content,
            model=self.backend.model,
            conversation_id=conversation_id,
        )
