"""
Suffix projection of the message log for incremental backward scroll-loading.
"""
from dataclasses import dataclass
from typing import Sequence

from core.errors import InvariantViolation
from models import Message

DEFAULT_BATCH_SIZE = 20


@dataclass
class GrowResult:
    grew: bool
    messages: list[Message]
    # Index of the previously topmost entry inside the new window; the caller
    # keeps it at the same visual offset by compensating the scroll position.
    anchor_index: int = 0


@dataclass
class ScrollOutcome:
    grow: GrowResult
    scrolled_up: bool


class DisplayWindow:
    """
    Tracks `size`, the length of the visible suffix of the log.

    The window never stores messages of its own: `view(log)` is always
    `log[len(log) - size:]`, so it cannot drift from the log.
    """

    def __init__(self, batch_size: int = DEFAULT_BATCH_SIZE):
        if batch_size <= 0:
            raise ValueError('batch_size must be positive')
        self.batch_size = batch_size
        self.size = 0
        self.scrolled_up = False
        self._log_len = 0

    def initialize(self, log: Sequence[Message]) -> list[Message]:
        self.size = min(self.batch_size, len(log))
        self._log_len = len(log)
        self.scrolled_up = False
        return self.view(log)

    reset = initialize

    def view(self, log: Sequence[Message]) -> list[Message]:
        self._check(log)
        return list(log[len(log) - self.size:]) if self.size else []

    def has_more(self, log: Sequence[Message]) -> bool:
        return self.size < len(log)

    def grow_if_at_top(self, log: Sequence[Message], at_top: bool = True) -> GrowResult:
        if not at_top or self.size >= len(log):
            return GrowResult(grew=False, messages=self.view(log))
        before = self.size
        self.size = min(self.size + self.batch_size, len(log))
        self._log_len = len(log)
        return GrowResult(grew=True, messages=self.view(log), anchor_index=self.size - before)

    def sync_to_log(self, log: Sequence[Message]) -> list[Message]:
        """
        Follow the log after an append, replace or truncate.

        New entries extend the window by the number appended (at least to a
        full batch); removals clamp it to the log length.
        """
        delta = len(log) - self._log_len
        if delta > 0:
            self.size = max(self.size + delta, self.batch_size)
        self.size = min(self.size, len(log))
        self._log_len = len(log)
        return self.view(log)

    def on_near_bottom(self, at_bottom: bool) -> bool:
        """Clear the scrolled-up flag when the viewport reaches the bottom; returns the flag."""
        if at_bottom:
            self.scrolled_up = False
        return self.scrolled_up

    def on_scroll(self, log: Sequence[Message], at_top: bool, at_bottom: bool) -> ScrollOutcome:
        """Evaluate top and bottom detection independently for one scroll event."""
        grow = self.grow_if_at_top(log, at_top)
        if grow.grew:
            self.scrolled_up = True
        scrolled_up = self.on_near_bottom(at_bottom)
        return ScrollOutcome(grow=grow, scrolled_up=scrolled_up)

    def _check(self, log: Sequence[Message]) -> None:
        if not 0 <= self.size <= len(log):
            raise InvariantViolation(f'window size {self.size} outside log of {len(log)}')
