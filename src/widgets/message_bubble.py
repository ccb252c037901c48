"""
One rendered conversation entry with its action buttons.
"""
from datetime import datetime

from rich.markdown import Markdown
from rich.text import Text
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.message import Message as TextualMessage
from textual.widgets import Button, Static

from core.intent import Domain, classify_domain
from models import Message, Role

DOMAIN_BADGES = {
    Domain.CODE: "[green]code[/green]",
    Domain.BUSINESS: "[yellow]business[/yellow]",
    Domain.MATH: "[blue]math[/blue]",
    Domain.GENERAL: "[magenta]general[/magenta]",
}


class BubbleAction(TextualMessage, bubble=True):
    def __init__(self, message_id: str, action: str) -> None:
        super().__init__()
        self.message_id = message_id
        self.action = action


class MessageBubble(Vertical):
    DEFAULT_CSS = """
    MessageBubble {
        height: auto;
        margin: 0 0 1 0;
        padding: 0 1;
    }
    MessageBubble.user {
        border-left: thick $accent;
    }
    MessageBubble.model {
        border-left: thick $secondary;
    }
    MessageBubble.error {
        border-left: thick $error;
    }
    MessageBubble .meta {
        color: $text-muted;
    }
    MessageBubble .actions {
        height: auto;
    }
    MessageBubble .actions Button {
        min-width: 8;
        height: 1;
        border: none;
        margin-right: 1;
    }
    """

    def __init__(self, msg: Message, last_in_view: bool = False, playing: bool = False,
                 can_regenerate: bool = False) -> None:
        super().__init__(id=f"msg-{msg.id}")
        self.msg = msg
        self.last_in_view = last_in_view
        self.playing = playing
        self.can_regenerate = can_regenerate
        if msg.is_error:
            self.add_class('error')
        else:
            self.add_class('user' if msg.role == Role.USER else 'model')

    def _meta(self) -> str:
        who = "you" if self.msg.role == Role.USER else "JENESI"
        when = datetime.fromtimestamp(self.msg.timestamp).strftime('%H:%M')
        meta = f"[bold]{who}[/bold] [dim]{when}[/dim]"
        if self.msg.role == Role.MODEL and not self.msg.is_error:
            meta += f"  {DOMAIN_BADGES[classify_domain(self.msg.text)]}"
        return meta

    def _body(self):
        if self.msg.role == Role.MODEL and not self.msg.is_error:
            text = self.msg.text + (" ▌" if self.msg.is_streaming else "")
            return Markdown(text)
        return Text(self.msg.text)

    def compose(self) -> ComposeResult:
        yield Static(self._meta(), classes="meta", markup=True)
        yield Static(self._body(), classes="body")
        with Horizontal(classes="actions"):
            if self.msg.is_error:
                yield Button("Retry", id="retry", variant="error")
            elif self.msg.role == Role.MODEL and not self.msg.is_streaming:
                yield Button("Stop" if self.playing else "Listen", id="speak")
                yield Button("Copy", id="copy")
                if self.last_in_view and self.can_regenerate:
                    yield Button("Regenerate", id="regenerate")

    def update_message(self, msg: Message) -> None:
        """Refresh text in place; a settle (streaming -> done) recomposes for the action row."""
        settled = self.msg.is_streaming and not msg.is_streaming
        self.msg = msg
        if settled:
            self.refresh(recompose=True)
            return
        self.query_one(".body", Static).update(self._body())
        self.query_one(".meta", Static).update(self._meta())

    def set_flags(self, playing: bool, can_regenerate: bool) -> None:
        if (playing, can_regenerate) != (self.playing, self.can_regenerate):
            self.playing = playing
            self.can_regenerate = can_regenerate
            self.refresh(recompose=True)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        event.stop()
        self.post_message(BubbleAction(self.msg.id, event.button.id or ""))
