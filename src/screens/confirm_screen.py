"""
Modal screens for the JENESI assistant.
"""

from textual import on
from textual.widgets import Static, OptionList
from textual.widgets.option_list import Option
from textual.containers import Center, Vertical
from textual.screen import ModalScreen


class ClearHistoryConfirmScreen(ModalScreen[bool]):
    """Asks before the conversation history is wiped."""
    CSS = """
#panel {
    width: 60%;
    max-width: 80;
    border: round $error;
    padding: 1 2;
}
#clear_options {
    margin-top: 1;
}
#panel OptionList {
    border: none;
    background: transparent;
}
    """
    BINDINGS = [
        ('1', 'choose_yes', 'yes'),
        ('2', 'choose_no', 'no'),
        ('escape', 'choose_no', 'cancel'),
    ]

    def __init__(self, message_count: int) -> None:
        """
        Args:
            message_count (int): number of messages that will be discarded
        """
        super().__init__()
        self.message_count = message_count

    def compose(self):
        yield Center(
                Vertical(
                    Static("[bold red]Clear the conversation history?[/bold red]\n", markup=True),
                    Static(
                        f"{self.message_count} messages will be removed. "
                        "Only the greeting is kept.\n",
                        markup=True,
                    ),
                    OptionList(
                        Option("1. Yes, clear history", id="yes"),
                        Option("2. No, keep it",        id="no"),
                        id="clear_options",
                    ),
                ),
                id="panel",
        )

    def on_mount(self) -> None:
        ol = self.query_one(OptionList)
        ol.focus()
        ol.highlighted = 1

    @on(OptionList.OptionSelected)
    def on_option_selected(self, event: OptionList.OptionSelected) -> None:
        self.dismiss(event.option_id == 'yes')

    def action_choose_yes(self) -> None:
        self.dismiss(True)

    def action_choose_no(self) -> None:
        self.dismiss(False)
