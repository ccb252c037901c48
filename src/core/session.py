"""
Single-flight streaming session: sends one turn to the generation backend and
grows a placeholder message in the log as response fragments arrive.
"""
import logging
from dataclasses import replace
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable, Optional, Protocol

from core.domain import DomainEvent, HistoryEntry, TokenEvent
from core.errors import InvariantViolation
from core.message_log import MessageLog
from models import ERROR_TEXT, WELCOME_ID, Message, Role

logger = logging.getLogger(__name__)


class Generator(Protocol):
    async def send(self, history: list[HistoryEntry], new_text: str) -> AsyncIterator[TokenEvent]: ...


class SessionState(str, Enum):
    IDLE = 'idle'
    DISPATCHED = 'dispatched'
    STREAMING = 'streaming'
    COMPLETED = 'completed'
    FAILED = 'failed'


Notify = Callable[[DomainEvent], Awaitable[None]]


async def _ignore(event: DomainEvent) -> None:
    pass


async def _close(stream) -> None:
    aclose = getattr(stream, 'aclose', None)
    if aclose is not None:
        await aclose()


def build_history(log: MessageLog, exclude_id: Optional[str] = None) -> list[HistoryEntry]:
    """Prior turns for the backend: no greeting, no error notices, no live placeholder."""
    return [
        {'role': msg.role.value, 'text': msg.text}
        for msg in log
        if msg.id != WELCOME_ID
        and msg.id != exclude_id
        and not msg.is_error
        and not msg.is_streaming
    ]


class StreamingSession:
    """
    IDLE -> DISPATCHED -> STREAMING -> COMPLETED | FAILED -> IDLE

    `start()` rejects while a session is DISPATCHED or STREAMING. There is
    no cancellation: a hung backend keeps the session busy. `reset()` (used by
    clear-history) detaches a running stream; its later updates target a
    message that no longer exists and are dropped by the log.
    """

    def __init__(self, log: MessageLog, generator: Generator, notify: Notify = _ignore):
        self.log = log
        self.generator = generator
        self.notify = notify
        self.state = SessionState.IDLE
        self.last_outcome: Optional[SessionState] = None
        self.placeholder_id: Optional[str] = None
        self._epoch = 0

    @property
    def active(self) -> bool:
        return self.state in (SessionState.DISPATCHED, SessionState.STREAMING)

    def reset(self) -> None:
        self._epoch += 1
        self.state = SessionState.IDLE
        self.placeholder_id = None

    def _normalize_tail(self, text: str) -> Message:
        self.log.truncate_tail(lambda m: m.is_error)
        tail = self.log.tail
        if tail is not None and tail.role == Role.USER and tail.text == text:
            return tail
        user_msg = Message(role=Role.USER, text=text, timestamp=self.log.next_timestamp())
        self.log.append(user_msg)
        return user_msg

    async def _set_state(self, state: SessionState) -> None:
        self.state = state
        await self.notify({'type': 'status', 'state': state.value})

    async def start(self, user_text: str) -> bool:
        """
        Answer `user_text`, streaming the reply into the log.

        Returns False when rejected (a session is active, or the text is
        blank); True once the session reached COMPLETED or FAILED.
        """
        text = user_text.strip()
        if self.active:
            logger.debug('start rejected: session is %s', self.state.value)
            return False
        if not text:
            return False

        # No awaits until DISPATCHED is set, so a second start() cannot slip in.
        epoch = self._epoch
        turn = self._normalize_tail(text)
        history = build_history(self.log, exclude_id=turn.id)
        self.state = SessionState.DISPATCHED
        self.placeholder_id = None
        await self.notify({'type': 'log', 'reason': 'turn'})
        await self.notify({'type': 'status', 'state': SessionState.DISPATCHED.value})

        try:
            stream = await self.generator.send(history, text)
            if epoch != self._epoch:
                await _close(stream)
                return True

            placeholder = Message(
                role=Role.MODEL, text="", timestamp=self.log.next_timestamp(), is_streaming=True,
            )
            self.log.append(placeholder)
            self.placeholder_id = placeholder.id
            await self.notify({'type': 'log', 'reason': 'placeholder'})
            await self._set_state(SessionState.STREAMING)

            async for chunk in stream:
                delta = chunk.get('text') or ''
                if not delta:
                    continue
                applied = self.log.replace_by_id(
                    placeholder.id, lambda m: replace(m, text=m.text + delta),
                )
                if applied:
                    await self.notify({'type': 'token', 'message_id': placeholder.id, 'text': delta})

            self.log.replace_by_id(
                placeholder.id, lambda m: replace(m, is_streaming=False), persist=True,
            )
            await self._finish(epoch, SessionState.COMPLETED)
        except InvariantViolation:
            if epoch == self._epoch:
                self.state = SessionState.IDLE
                self.placeholder_id = None
            raise
        except Exception:
            logger.exception('generation failed')
            await self._fail(epoch)
        return True

    async def _fail(self, epoch: int) -> None:
        if epoch != self._epoch:
            return
        placeholder = self.log.get(self.placeholder_id) if self.placeholder_id else None
        if placeholder is not None and placeholder.text:
            # keep the partial text, just settle it
            self.log.replace_by_id(
                placeholder.id, lambda m: replace(m, is_streaming=False), persist=True,
            )
        else:
            # nothing arrived: the empty placeholder gives way to the failure notice
            if placeholder is not None:
                self.log.truncate_tail(lambda m: m.id == placeholder.id)
            self.placeholder_id = None
            self.log.append(Message(
                role=Role.MODEL, text=ERROR_TEXT, timestamp=self.log.next_timestamp(), is_error=True,
            ))
        await self.notify({'type': 'log', 'reason': 'failed'})
        await self._finish(epoch, SessionState.FAILED)

    async def _finish(self, epoch: int, outcome: SessionState) -> None:
        if epoch != self._epoch:
            return
        message_id = self.placeholder_id
        self.last_outcome = outcome
        self.state = outcome
        await self.notify({'type': 'done', 'outcome': outcome.value, 'message_id': message_id})
        self.placeholder_id = None
        await self._set_state(SessionState.IDLE)
