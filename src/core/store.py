"""
JSON file persistence for the conversation log.

One file per conversation id; writes go through a temp file and `os.replace`
so a crash mid-write never leaves a truncated payload behind.
"""
import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Protocol

from core.errors import PersistenceError

logger = logging.getLogger(__name__)


class ConversationStore(Protocol):
    def save(self, conversation_id: str, messages: list[dict[str, Any]]) -> None: ...

    def load(self, conversation_id: str) -> list[dict[str, Any]]: ...

    def clear(self, conversation_id: str) -> None: ...


def _safe_name(conversation_id: str) -> str:
    return re.sub(r"[^\w.\-@]+", "_", conversation_id.strip() or "default")[:128]


class JsonConversationStore:
    def __init__(self, root: Path):
        self.root = Path(root)

    def path_for(self, conversation_id: str) -> Path:
        return self.root / f'{_safe_name(conversation_id)}.json'

    def save(self, conversation_id: str, messages: list[dict[str, Any]]) -> None:
        path = self.path_for(conversation_id)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                'w', encoding='utf-8', delete=False, dir=str(path.parent), suffix='.tmp'
            ) as tmp:
                json.dump(messages, tmp, ensure_ascii=False)
                tmp.flush()
                os.fsync(tmp.fileno())
                tmp_name = tmp.name
            os.replace(tmp_name, path)
        except OSError as e:
            raise PersistenceError(f'cannot write {path}: {e}') from e

    def load(self, conversation_id: str) -> list[dict[str, Any]]:
        """Return the persisted messages, or [] when nothing was saved yet."""
        path = self.path_for(conversation_id)
        if not path.exists():
            return []
        try:
            with path.open('r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f'cannot read {path}: {e}') from e
        if not isinstance(data, list):
            raise PersistenceError(f'{path} does not hold a message list')
        return data

    def clear(self, conversation_id: str) -> None:
        path = self.path_for(conversation_id)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceError(f'cannot remove {path}: {e}') from e


class MemoryConversationStore:
    """In-process store; used when persistence is disabled and in tests."""

    def __init__(self):
        self.data: dict[str, list[dict[str, Any]]] = {}

    def save(self, conversation_id: str, messages: list[dict[str, Any]]) -> None:
        self.data[conversation_id] = [dict(m) for m in messages]

    def load(self, conversation_id: str) -> list[dict[str, Any]]:
        return [dict(m) for m in self.data.get(conversation_id, [])]

    def clear(self, conversation_id: str) -> None:
        self.data.pop(conversation_id, None)
