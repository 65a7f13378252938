"""
Chat pane — transcript of the active conversation plus the prompt input.
Prose renders as Markdown, fenced code blocks with syntax highlighting.
"""
from __future__ import annotations
from rich.console import Group, RenderableType
from rich.markdown import Markdown
from rich.syntax import Syntax
from rich.text import Text
from textual.app import ComposeResult
from textual.containers import VerticalScroll
from textual.widgets import Input, Static
from partyline.segments import split_segments
from partyline.session import StreamState
from partyline.storage.models import Message
from partyline.tui.screens.base import PartyLinePane

_ROLE_HEADER = {
    "user": ("▶ you", "bold cyan"),
    "assistant": ("◀ model", "bold yellow"),
}

_STATUS_TEXT = {
    StreamState.REQUESTING: "[yellow]dialing…[/yellow]",
    StreamState.STREAMING: "[yellow]model is thinking…  (esc to hang up)[/yellow]",
    StreamState.CANCELLED: "[dim]cancelled[/dim]",
    StreamState.FAILED: "[red]last request failed[/red]",
}


def render_message(index: int, message: Message) -> RenderableType:
    label, style = _ROLE_HEADER.get(message.role, (message.role, "bold"))
    parts: list[RenderableType] = [Text(f"{label}  #{index}", style=style)]
    for segment in split_segments(message.content):
        if segment.kind == "code":
            parts.append(Syntax(
                segment.text.rstrip("\n"),
                segment.language or "text",
                theme="monokai",
                line_numbers=False,
                word_wrap=True,
            ))
        elif segment.text:
            parts.append(Markdown(segment.text))
    parts.append(Text(""))
    return Group(*parts)


def render_transcript(messages: list[Message]) -> RenderableType:
    if not messages:
        return Text("No messages yet. Ask anything.", style="dim")
    return Group(*(render_message(i, m) for i, m in enumerate(messages)))


class ChatPane(PartyLinePane):
    DEFAULT_CSS = """
    ChatPane {
        width: 1fr;
        height: 1fr;
    }
    ChatPane #transcript {
        height: 1fr;
        padding: 0 1;
    }
    ChatPane #chat-status {
        height: 1;
        padding: 0 1;
    }
    """

    def compose(self) -> ComposeResult:
        with VerticalScroll(id="transcript"):
            yield Static(id="transcript-body")
        yield Static("", id="chat-status", markup=True)
        yield Input(placeholder="Ask anything", id="chat-input")

    def on_mount(self) -> None:
        self.refresh_content()
        self.query_one("#chat-input", Input).focus()

    def refresh_content(self) -> None:
        body = self.query_one("#transcript-body", Static)
        body.update(render_transcript(self.store.active_messages))
        scroll = self.query_one("#transcript", VerticalScroll)
        self.call_after_refresh(scroll.scroll_end, animate=False)

    def show_state(self, state: StreamState) -> None:
        self.query_one("#chat-status", Static).update(_STATUS_TEXT.get(state, ""))

    def set_prompt(self, value: str, placeholder: str = "Ask anything") -> None:
        prompt = self.query_one("#chat-input", Input)
        prompt.value = value
        prompt.placeholder = placeholder
        prompt.focus()
