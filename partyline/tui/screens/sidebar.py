"""
Sidebar — the conversation list, newest first.
Selecting an entry switches the active conversation.
"""
from __future__ import annotations
from rich.text import Text
from textual.app import ComposeResult
from textual.widgets import Label, ListItem, ListView
from partyline.tui.screens.base import PartyLinePane


class ConversationSidebar(PartyLinePane):
    DEFAULT_CSS = """
    ConversationSidebar {
        width: 32;
        height: 1fr;
        border-right: solid $primary-darken-2;
    }
    ConversationSidebar ListView {
        height: 1fr;
    }
    """

    def __init__(self, store, **kwargs):
        super().__init__(store, **kwargs)
        # (ids, titles, active id) of the last render; streaming flushes
        # don't change it, so the list isn't rebuilt on every token
        self._signature: tuple = ()

    def compose(self) -> ComposeResult:
        yield self.section("Conversations")
        yield ListView(id="conversation-list")

    def on_mount(self) -> None:
        self.refresh_content()

    def _current_signature(self) -> tuple:
        return (
            tuple((c.id, c.title) for c in self.store.conversations),
            self.store.active_conversation_id,
        )

    def refresh_content(self) -> None:
        signature = self._current_signature()
        if signature == self._signature:
            return
        self._signature = signature

        list_view = self.query_one("#conversation-list", ListView)
        list_view.clear()
        active_pos = None
        items = []
        for pos, conv in enumerate(self.store.conversations):
            style = "bold" if conv.id == self.store.active_conversation_id else ""
            items.append(ListItem(Label(Text(conv.title, style=style)), name=conv.id))
            if conv.id == self.store.active_conversation_id:
                active_pos = pos
        list_view.extend(items)
        if active_pos is not None:
            self.call_after_refresh(setattr, list_view, "index", active_pos)

    def on_list_view_selected(self, event: ListView.Selected) -> None:
        event.stop()
        conversation_id = event.item.name
        if conversation_id and conversation_id != self.store.active_conversation_id:
            self.store.switch_conversation(conversation_id)
