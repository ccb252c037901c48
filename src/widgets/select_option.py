from textual import on
from textual.widgets import OptionList
from textual.widgets.option_list import Option
from textual.message import Message


class SelectionMade(Message):
    def __init__(self, label: str, value: str) -> None:
        super().__init__()
        self.label = label
        self.value = value


class SelectOption(OptionList):
    """Quick-reply suggestions under the input; picking one posts `SelectionMade`."""

    DEFAULT_CSS = """
    SelectOption {
        height: auto;
        max-height: 6;
    }
    """

    def __init__(self, id: str, labels: list[str] | None = None) -> None:
        super().__init__(id=id)
        if labels:
            self.set_selection_options(labels)

    def set_selection_options(self, labels: list[str], ids: list[str] | None = None):
        self.clear_options()
        if ids:
            self.add_options(Option(label, id) for label, id in zip(labels, ids))
        else:
            self.add_options(Option(label) for label in labels)
        self.highlighted = None

    @on(OptionList.OptionSelected)
    def on_option_selected(self, event: OptionList.OptionSelected) -> None:
        opt = event.option
        label = str(opt.prompt)
        value = opt.id or label

        self.post_message(SelectionMade(label, value))
        event.stop()
