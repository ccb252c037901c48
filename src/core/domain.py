"""
Events exchanged between the generation backend, the conversation
controller and the UI pump.
"""

from typing import Literal, Optional, TypedDict, Union


class HistoryEntry(TypedDict):
    role: Literal['user', 'model']
    text: str


class TokenEvent(TypedDict, total=False):
    type: Literal['token']
    text: str
    message_id: str


class LogEvent(TypedDict, total=False):
    type: Literal['log']
    reason: str


class StatusEvent(TypedDict, total=False):
    type: Literal['status']
    state: str


class DoneEvent(TypedDict, total=False):
    type: Literal['done']
    outcome: str
    message_id: Optional[str]


class PlaybackEvent(TypedDict, total=False):
    type: Literal['playback']
    message_id: Optional[str]


DomainEvent = Union[
    TokenEvent, LogEvent, StatusEvent, DoneEvent, PlaybackEvent,
]
