"""
Message input for the JENESI chat screen.
"""
from textual.widgets import Input
from textual.message import Message


class InputArea(Input):
    class Submit(Message, bubble=True):
        def __init__(self, value: str) -> None:
            super().__init__()
            self.value = value

    async def on_key(self, event) -> None:
        if event.key == "enter":
            event.stop()
            event.prevent_default()
            value = self.value.strip()
            if not value or self.disabled:
                return
            self.post_message(self.Submit(value))
            self.value = ""
