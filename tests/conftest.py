"""Pytest configuration and shared fakes for the conversation core."""
from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Any, Optional

import pytest

# Ensure src/ is on the import path (for local imports without installing as package)
SRC_PATH = Path(__file__).resolve().parent.parent / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from core.errors import PersistenceError  # noqa: E402
from core.message_log import MessageLog  # noqa: E402
from core.store import MemoryConversationStore  # noqa: E402

CONVERSATION_ID = "test-conversation"


class ScriptedGenerator:
    """Generation fake: replays `chunks`, optionally failing or pausing."""

    def __init__(
        self,
        chunks: Optional[list[str]] = None,
        fail_on_send: bool = False,
        fail_after: Optional[int] = None,
        gate: Optional[asyncio.Event] = None,
        on_send=None,
    ):
        self.chunks = list(chunks or [])
        self.fail_on_send = fail_on_send
        self.fail_after = fail_after
        self.gate = gate
        self.on_send = on_send
        self.calls: list[tuple[list[dict[str, Any]], str]] = []

    async def send(self, history, new_text):
        self.calls.append((list(history), new_text))
        if self.on_send is not None:
            self.on_send()
        if self.fail_on_send:
            raise ConnectionError("backend unreachable")
        return self._stream()

    async def _stream(self):
        for i, chunk in enumerate(self.chunks):
            if self.fail_after is not None and i == self.fail_after:
                raise ConnectionError("stream dropped")
            if self.gate is not None:
                await self.gate.wait()
            yield {"type": "token", "text": chunk}


class FailingStore(MemoryConversationStore):
    def __init__(self, fail_load: bool = False, fail_save: bool = False):
        super().__init__()
        self.fail_load = fail_load
        self.fail_save = fail_save

    def save(self, conversation_id, messages):
        if self.fail_save:
            raise PersistenceError("disk full")
        super().save(conversation_id, messages)

    def load(self, conversation_id):
        if self.fail_load:
            raise PersistenceError("unreadable")
        return super().load(conversation_id)


class FakeHandle:
    def __init__(self, name: str, events: list[str]):
        self.name = name
        self.events = events
        self.finished = asyncio.Event()
        self.stops = 0

    async def wait(self) -> None:
        await self.finished.wait()

    async def stop(self) -> None:
        self.stops += 1
        self.events.append(f"release:{self.name}")
        self.finished.set()


class FakePlayer:
    def __init__(self):
        self.events: list[str] = []
        self.handles: list[FakeHandle] = []

    async def play(self, pcm: bytes) -> FakeHandle:
        name = pcm.decode()
        self.events.append(f"acquire:{name}")
        handle = FakeHandle(name, self.events)
        self.handles.append(handle)
        return handle


class FakeSynthesizer:
    """Returns the requested text as bytes; `gates` can hold specific texts back."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.requests: list[str] = []
        self.gates: dict[str, asyncio.Event] = {}

    async def synthesize(self, text: str) -> bytes:
        self.requests.append(text)
        gate = self.gates.get(text)
        if gate is not None:
            await gate.wait()
        if self.fail:
            raise ConnectionError("tts unavailable")
        return text.encode()


@pytest.fixture
def store() -> MemoryConversationStore:
    return MemoryConversationStore()


@pytest.fixture
def log(store) -> MessageLog:
    return MessageLog(store, CONVERSATION_ID)
