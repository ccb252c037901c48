"""
Custom UI widgets for the JENESI assistant.
"""
from .input_area import InputArea
from .chat_log import ChatLog
from .message_bubble import BubbleAction, MessageBubble
from .select_option import SelectOption, SelectionMade

__all__ = ["InputArea", "ChatLog", "BubbleAction", "MessageBubble", "SelectOption", "SelectionMade"]
