"""
Conversation controller: owns the message log, the display window, the
streaming session and playback, and coordinates retry and regenerate.
"""
import asyncio
import logging
from typing import Any, Dict, Optional

from core.display_window import DisplayWindow, ScrollOutcome
from core.domain import DomainEvent
from core.message_log import MessageLog
from core.playback import PlaybackController
from core.session import Generator, SessionState, StreamingSession
from core.speech import Player, Synthesizer
from core.store import ConversationStore
from models import Message, Role

logger = logging.getLogger(__name__)


class Orchestrator:
    """
    Conversation controller. Owns the log, the display window, the streaming
    session and the playback controller, and coordinates retry/regenerate.

    State changes are published on `events_q` for the UI pump; the UI reads
    state back through the properties here and never mutates it directly.
    """

    def __init__(
        self,
        events_q: asyncio.Queue,
        generator: Generator,
        synthesizer: Synthesizer,
        player: Player,
        store: ConversationStore,
        conversation_id: str,
        batch_size: int = 20,
    ):
        self.events_q = events_q
        self.log = MessageLog(store, conversation_id)
        self.window = DisplayWindow(batch_size)
        self.session = StreamingSession(self.log, generator, self._emit)
        self.playback = PlaybackController(synthesizer, player, self._emit)

    async def _emit(self, ev: Dict[str, Any]):
        if ev.get('type') in ('log', 'token'):
            self.window.sync_to_log(self.log)
        await self.events_q.put(ev)

    # -- state read by the UI ---------------------------------------------

    @property
    def state(self) -> SessionState:
        return self.session.state

    @property
    def busy(self) -> bool:
        return self.session.active

    @property
    def visible(self) -> list[Message]:
        return self.window.view(self.log)

    @property
    def has_earlier(self) -> bool:
        return self.window.has_more(self.log)

    @property
    def playing_id(self) -> Optional[str]:
        return self.playback.active_id

    def can_regenerate(self) -> bool:
        """Regenerate needs an idle session and a settled MODEL reply right after a USER turn."""
        if self.session.active or len(self.log) < 2:
            return False
        tail, prev = self.log[-1], self.log[-2]
        return tail.role == Role.MODEL and not tail.is_streaming and prev.role == Role.USER

    # -- operations ---------------------------------------------------------

    def load(self) -> list[Message]:
        self.log.load()
        return self.window.initialize(self.log)

    async def submit(self, text: str) -> bool:
        if self.session.active:
            return False
        self.window.scrolled_up = False
        return await self.session.start(text)

    async def retry(self) -> bool:
        """Answer the most recent USER turn again; the session drops any trailing error."""
        for msg in reversed(self.log.messages):
            if msg.role == Role.USER:
                return await self.submit(msg.text)
        return False

    async def regenerate(self) -> bool:
        if not self.can_regenerate():
            return False
        tail = self.log.tail
        self.log.truncate_tail(lambda m: m.id == tail.id)
        await self._emit({'type': 'log', 'reason': 'regenerate'})
        return await self.retry()

    async def clear(self) -> None:
        self.session.reset()
        await self.playback.stop()
        self.log.clear()
        self.window.reset(self.log)
        await self.events_q.put({'type': 'log', 'reason': 'clear'})
        await self.events_q.put({'type': 'status', 'state': SessionState.IDLE.value})

    async def toggle_playback(self, message_id: str) -> None:
        msg = self.log.get(message_id)
        if msg is None and message_id != self.playback.active_id:
            logger.debug('playback requested for unknown message %s', message_id)
            return
        await self.playback.toggle(message_id, msg.text if msg else '')

    def on_scroll(self, at_top: bool, at_bottom: bool) -> ScrollOutcome:
        return self.window.on_scroll(self.log, at_top, at_bottom)

    def jump_to_latest(self) -> None:
        self.window.scrolled_up = False


#--------------- manual check
async def main():
    from core.agents.assistant import LangGraphGenerator
    from core.config import Settings
    from core.speech import OpenAISpeechSynthesizer, SubprocessPcmPlayer
    from core.store import MemoryConversationStore

    settings = Settings.from_env()
    events_q = asyncio.Queue()
    orch = Orchestrator(
        events_q,
        LangGraphGenerator(settings.chat_model),
        OpenAISpeechSynthesizer(settings.tts_model, settings.tts_voice),
        SubprocessPcmPlayer(settings.audio_player),
        MemoryConversationStore(),
        settings.conversation_id,
    )
    orch.load()

    async def consume():
        while True:
            ev = await events_q.get()
            if ev.get('type') == 'token':
                print(ev.get('text', ''), end='', flush=True)
            elif ev.get('type') == 'done':
                print(f"\n[{ev.get('outcome')}]")
                break

    consumer = asyncio.create_task(consume())
    await orch.submit("hi")
    await consumer


if __name__ == "__main__":
    asyncio.run(main())
