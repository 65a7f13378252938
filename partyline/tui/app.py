"""
PartyLine console — multi-conversation chat over the local line.
Textual TUI: conversation sidebar on the left, transcript and prompt on the right.
Entry point: partyline jack (alias: chat, tui)
"""
from __future__ import annotations
from typing import ClassVar
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal
from textual.widgets import Footer, Header, Input
from partyline.conversations import ConversationStore
from partyline.session import ChatSession, StreamState
from partyline.storage.models import ChatData, DEFAULT_TITLE
from partyline.tui.screens.chat import ChatPane
from partyline.tui.screens.sidebar import ConversationSidebar


class PartyLineApp(App):
    """PartyLine chat TUI."""
    TITLE = "PartyLine"
    SUB_TITLE = "local LLM party line"
    BINDINGS: ClassVar[list[Binding]] = [
        Binding("ctrl+q", "quit", "Disconnect", priority=True),
        Binding("ctrl+n", "new_chat", "New chat", show=True),
        Binding("ctrl+e", "edit_last", "Edit last", show=True),
        Binding("ctrl+r", "rename", "Rename", show=True),
        Binding("ctrl+y", "copy_last", "Copy reply", show=True),
        Binding("escape", "cancel", "Cancel", show=True),
    ]

    def __init__(self, store: ConversationStore, session: ChatSession, **kwargs):
        super().__init__(**kwargs)
        self.store = store
        self.session = session
        self._renaming = False
        self._unsubscribe: list = []
        self._active_id = store.active_conversation_id

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        with Horizontal():
            yield ConversationSidebar(self.store, id="sidebar")
            yield ChatPane(self.store, id="chat")
        yield Footer()

    def on_mount(self) -> None:
        self._unsubscribe = [
            self.store.subscribe(self._on_store_change),
            self.session.subscribe(self._on_state_change),
        ]

    def on_unmount(self) -> None:
        for unsubscribe in self._unsubscribe:
            unsubscribe()

    @property
    def chat(self) -> ChatPane:
        return self.query_one("#chat", ChatPane)

    def _on_store_change(self, data: ChatData) -> None:
        if data.active_conversation_id != self._active_id:
            self._active_id = data.active_conversation_id
            if self.session.editing_index is not None:
                self.session.cancel_edit()
                self.chat.set_prompt("")
        self.query_one("#sidebar", ConversationSidebar).refresh_content()
        self.chat.refresh_content()

    def _on_state_change(self, state: StreamState) -> None:
        self.chat.show_state(state)

    # ── Input ────────────────────────────────────────────────────────────────
    def on_input_submitted(self, event: Input.Submitted) -> None:
        value = event.value
        if self._renaming:
            self._renaming = False
            conversation = self.store.active_conversation
            if conversation is not None:
                self.store.update_conversation_title(conversation.id, value.strip() or DEFAULT_TITLE)
            self.chat.set_prompt("")
            return
        if self.session.busy or not value.strip():
            return
        self.chat.set_prompt("")
        self.run_worker(self.session.send(value), exclusive=True, group="send")

    # ── Actions ──────────────────────────────────────────────────────────────
    def action_new_chat(self) -> None:
        self.session.cancel_edit()
        self.store.create_new_conversation()
        self.chat.set_prompt("")

    def action_edit_last(self) -> None:
        messages = self.store.active_messages
        for index in range(len(messages) - 1, -1, -1):
            if messages[index].role == "user":
                content = self.session.start_edit(index)
                if content is not None:
                    self.chat.set_prompt(content, placeholder="Edit your prompt...")
                return

    def action_rename(self) -> None:
        conversation = self.store.active_conversation
        if conversation is None:
            return
        self._renaming = True
        self.chat.set_prompt(conversation.title, placeholder="Conversation title...")

    def action_copy_last(self) -> None:
        for message in reversed(self.store.active_messages):
            if message.role == "assistant" and message.content:
                self.copy_to_clipboard(message.content)
                self.notify("Reply copied to clipboard")
                return

    def action_cancel(self) -> None:
        if self.session.cancel():
            return
        if self._renaming or self.session.editing_index is not None:
            self._renaming = False
            self.session.cancel_edit()
            self.chat.set_prompt("")
