"""
The ordered, append-mostly conversation log and its persistence policy.
"""
import logging
import time
from dataclasses import replace
from typing import Callable, Iterator, Optional

from core.errors import InvariantViolation, PersistenceError
from core.store import ConversationStore
from models import Message, welcome_message

logger = logging.getLogger(__name__)


class MessageLog:
    """
    Owns the message sequence for the single conversation of this process.

    Every externally observable mutation (append, terminal replace, truncate,
    clear) is followed by a full write through the store. Store failures are
    logged and the log keeps working in memory.
    """

    def __init__(self, store: ConversationStore, conversation_id: str):
        self.store = store
        self.conversation_id = conversation_id
        self._messages: list[Message] = [welcome_message()]
        self._ids: set[str] = {self._messages[0].id}

    # -- read side --------------------------------------------------------

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(list(self._messages))

    def __getitem__(self, index):
        return self._messages[index]

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    @property
    def tail(self) -> Optional[Message]:
        return self._messages[-1] if self._messages else None

    def get(self, message_id: str) -> Optional[Message]:
        if message_id not in self._ids:
            return None
        for msg in self._messages:
            if msg.id == message_id:
                return msg
        return None

    def streaming_message(self) -> Optional[Message]:
        for msg in reversed(self._messages):
            if msg.is_streaming:
                return msg
        return None

    def next_timestamp(self) -> float:
        """Wall clock time, never earlier than the newest entry."""
        now = time.time()
        tail = self.tail
        return max(now, tail.timestamp) if tail else now

    # -- mutations --------------------------------------------------------

    def append(self, message: Message) -> None:
        if message.id in self._ids:
            raise InvariantViolation(f'duplicate message id {message.id}')
        if message.is_streaming and self.streaming_message() is not None:
            raise InvariantViolation('a streaming message is already in the log')
        tail = self.tail
        if tail is not None and message.timestamp < tail.timestamp:
            raise InvariantViolation(f'message {message.id} is older than the log tail')
        self._messages.append(message)
        self._ids.add(message.id)
        self.persist()

    def replace_by_id(
        self,
        message_id: str,
        mutator: Callable[[Message], Message],
        persist: bool = False,
    ) -> bool:
        """
        Swap the message `message_id` for `mutator(message)`.

        Unknown ids are ignored so that late stream updates arriving after a
        `clear()` are dropped silently. Returns whether a message was patched.
        """
        if message_id not in self._ids:
            logger.debug('dropping update for unknown message %s', message_id)
            return False
        for i, msg in enumerate(self._messages):
            if msg.id != message_id:
                continue
            patched = mutator(msg)
            if patched.id != msg.id:
                raise InvariantViolation('a patch cannot change the message id')
            self._messages[i] = patched
            break
        if persist:
            self.persist()
        return True

    def truncate_tail(self, predicate: Callable[[Message], bool]) -> list[Message]:
        """Remove trailing messages while `predicate` holds; returns them oldest first."""
        removed: list[Message] = []
        while self._messages and predicate(self._messages[-1]):
            msg = self._messages.pop()
            self._ids.discard(msg.id)
            removed.append(msg)
        if removed:
            self.persist()
        removed.reverse()
        return removed

    def clear(self) -> None:
        greeting = welcome_message()
        self._messages = [greeting]
        self._ids = {greeting.id}
        try:
            self.store.clear(self.conversation_id)
        except PersistenceError as e:
            logger.warning('failed to clear persisted conversation: %s', e)

    # -- persistence ------------------------------------------------------

    def persist(self) -> bool:
        try:
            self.store.save(self.conversation_id, [m.to_dict() for m in self._messages])
        except PersistenceError as e:
            logger.warning('failed to save conversation: %s', e)
            return False
        return True

    def load(self) -> None:
        """
        Replace the in-memory log with the persisted one.

        Missing, unreadable or corrupt payloads fall back to the greeting.
        Messages saved mid-stream are settled, since no session survives a restart.
        """
        try:
            raw = self.store.load(self.conversation_id)
        except PersistenceError as e:
            logger.warning('failed to load conversation, starting fresh: %s', e)
            raw = []

        messages: list[Message] = []
        ids: set[str] = set()
        try:
            for item in raw:
                msg = Message.from_dict(item)
                if msg.id in ids:
                    raise ValueError(f'duplicate id {msg.id}')
                if msg.is_streaming:
                    msg = replace(msg, is_streaming=False)
                messages.append(msg)
                ids.add(msg.id)
        except (KeyError, TypeError, ValueError, InvariantViolation) as e:
            logger.warning('corrupt conversation payload, starting fresh: %s', e)
            messages = []

        if not messages:
            greeting = welcome_message()
            messages, ids = [greeting], {greeting.id}
        self._messages = messages
        self._ids = ids
