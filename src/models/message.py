"""
Data models for the JENESI assistant conversation.
"""
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from core.errors import InvariantViolation


WELCOME_ID = 'welcome'
WELCOME_TEXT = (
    "Hello, I'm JENESI Autobot. I can chat with you, search the web, "
    "or speak my responses. How can I help you today?"
)
ERROR_TEXT = "I encountered a connection error. Please try again."


class Role(str, Enum):
    USER = 'user'
    MODEL = 'model'


def new_message_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class Message:
    """
    A single entry of the conversation log.

    Messages are frozen; the log swaps in patched copies through
    `MessageLog.replace_by_id`, which is how the streaming placeholder grows.
    """
    role: Role
    text: str = ""
    id: str = field(default_factory=new_message_id)
    timestamp: float = field(default_factory=time.time)
    is_streaming: bool = False
    is_error: bool = False

    def __post_init__(self):
        if self.is_error and self.is_streaming:
            raise InvariantViolation(f'error message {self.id} cannot be streaming')

    def to_dict(self) -> dict[str, Any]:
        return {
            'id': self.id,
            'role': self.role.value,
            'text': self.text,
            'timestamp': self.timestamp,
            'isStreaming': self.is_streaming,
            'isError': self.is_error,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'Message':
        """Build a message from its persisted form; raises ValueError/KeyError/TypeError on bad input."""
        text = data['text']
        msg_id = data['id']
        if not isinstance(text, str) or not isinstance(msg_id, str):
            raise TypeError('message id and text must be strings')
        return cls(
            id=msg_id,
            role=Role(data['role']),
            text=text,
            timestamp=float(data['timestamp']),
            is_streaming=bool(data.get('isStreaming', False)),
            is_error=bool(data.get('isError', False)),
        )


def welcome_message() -> Message:
    return Message(id=WELCOME_ID, role=Role.MODEL, text=WELCOME_TEXT)
