"""
Data models for the JENESI assistant.
"""
from .message import (
    ERROR_TEXT,
    WELCOME_ID,
    WELCOME_TEXT,
    Message,
    Role,
    new_message_id,
    welcome_message,
)

__all__ = [
    "ERROR_TEXT",
    "WELCOME_ID",
    "WELCOME_TEXT",
    "Message",
    "Role",
    "new_message_id",
    "welcome_message",
]
