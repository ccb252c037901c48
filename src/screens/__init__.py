"""
Modal screens for the JENESI assistant.
"""
from .confirm_screen import ClearHistoryConfirmScreen

__all__ = ["ClearHistoryConfirmScreen"]
