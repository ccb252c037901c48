"""
Scrollable view of the display window.
"""
from typing import Optional

from textual.containers import VerticalScroll
from textual.message import Message as TextualMessage
from textual.widgets import Static

from models import Message
from .message_bubble import MessageBubble

BOTTOM_SLACK = 2


class ChatLog(VerticalScroll):
    DEFAULT_CSS = """
    ChatLog {
        height: 1fr;
        padding: 0 1;
    }
    ChatLog #earlier {
        color: $text-muted;
        text-align: center;
    }
    ChatLog #thinking {
        color: $accent;
    }
    """

    class Scrolled(TextualMessage, bubble=True):
        def __init__(self, at_top: bool, at_bottom: bool) -> None:
            super().__init__()
            self.at_top = at_top
            self.at_bottom = at_bottom

    def __init__(self, id: Optional[str] = None) -> None:
        super().__init__(id=id)
        self._shown_ids: list[str] = []
        self._bubbles: dict[str, MessageBubble] = {}
        self._thinking: Optional[Static] = None
        self._earlier: Optional[Static] = None

    def on_mount(self) -> None:
        self.watch(self, "scroll_y", self._scroll_changed, init=False)

    def _scroll_changed(self, old: float, new: float) -> None:
        at_top = new <= 0
        at_bottom = self.max_scroll_y - new <= BOTTOM_SLACK
        self.post_message(self.Scrolled(at_top, at_bottom))

    @property
    def at_bottom(self) -> bool:
        return self.max_scroll_y - self.scroll_y <= BOTTOM_SLACK

    async def show_window(
        self,
        messages: list[Message],
        has_earlier: bool,
        playing_id: Optional[str],
        can_regenerate: bool,
    ) -> None:
        """Rebuild the bubbles when the visible id sequence changed, otherwise patch in place."""
        ids = [m.id for m in messages]
        if ids == self._shown_ids:
            for msg in messages:
                bubble = self._bubbles[msg.id]
                if bubble.msg != msg:
                    bubble.update_message(msg)
                bubble.set_flags(msg.id == playing_id, can_regenerate)
            return

        await self.remove_children()
        self._bubbles = {}
        self._thinking = None
        self._earlier = None
        if has_earlier:
            self._earlier = Static("↑ scroll up to load earlier messages", id="earlier")
            await self.mount(self._earlier)
        bubbles = [
            MessageBubble(
                msg,
                last_in_view=(i == len(messages) - 1),
                playing=(msg.id == playing_id),
                can_regenerate=can_regenerate,
            )
            for i, msg in enumerate(messages)
        ]
        if bubbles:
            await self.mount_all(bubbles)
        self._bubbles = {b.msg.id: b for b in bubbles}
        self._shown_ids = ids

    def update_message(self, msg: Message) -> None:
        bubble = self._bubbles.get(msg.id)
        if bubble is not None:
            bubble.update_message(msg)

    async def set_thinking(self, thinking: bool) -> None:
        if thinking and self._thinking is None:
            self._thinking = Static("JENESI is thinking…", id="thinking")
            await self.mount(self._thinking)
        elif not thinking and self._thinking is not None:
            await self._thinking.remove()
            self._thinking = None

    def keep_anchor(self, old_height: int) -> None:
        """After prepending entries, keep the previous top entry where it was on screen."""
        def restore() -> None:
            self.scroll_to(y=self.virtual_size.height - old_height, animate=False)
        self.call_after_refresh(restore)

    def follow(self) -> None:
        self.call_after_refresh(self.scroll_end, animate=False)
