"""
Base class for PartyLine TUI panes.
All panes inherit from PartyLinePane, which provides:
  - refresh_content() hook (called by the app whenever the store changes)
  - a section header helper
"""
from __future__ import annotations
from textual.widget import Widget
from textual.widgets import Static
from partyline.conversations import ConversationStore


class PartyLinePane(Widget):
    """
    Base widget for TUI panel content.
    Subclass this, implement compose() and refresh_content().
    """
    DEFAULT_CSS = """
    PartyLinePane {
        height: 1fr;
    }
    """

    def __init__(self, store: ConversationStore, **kwargs):
        super().__init__(**kwargs)
        self.store = store

    def refresh_content(self) -> None:
        """Called by the app after every store change. Override in subclasses."""
        self.refresh()

    @staticmethod
    def section(title: str) -> Static:
        """Return a styled section header widget."""
        return Static(f"[bold]── {title} ──[/bold]", markup=True, classes="section")
