"""
Single-flight read-aloud playback bound to a message id.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Optional

from core.domain import PlaybackEvent
from core.speech import PlaybackHandle, Player, Synthesizer, normalize_speech_text

logger = logging.getLogger(__name__)


async def _ignore(event: PlaybackEvent) -> None:
    pass


class PlaybackController:
    """
    At most one playback resource exists. Any new playback first releases the
    current one, and a synthesis that finishes after being superseded is
    discarded without acquiring a resource.
    """

    def __init__(
        self,
        synthesizer: Synthesizer,
        player: Player,
        notify: Callable[[PlaybackEvent], Awaitable[None]] = _ignore,
    ):
        self.synthesizer = synthesizer
        self.player = player
        self.notify = notify
        self.active_id: Optional[str] = None
        self._handle: Optional[PlaybackHandle] = None
        self._token = 0
        self._watcher: Optional[asyncio.Task] = None

    @property
    def playing(self) -> bool:
        return self.active_id is not None

    async def _set_active(self, message_id: Optional[str]) -> None:
        if message_id == self.active_id:
            return
        self.active_id = message_id
        await self.notify({'type': 'playback', 'message_id': message_id})

    async def _release(self) -> None:
        handle, self._handle = self._handle, None
        if handle is None:
            return
        try:
            await handle.stop()
        except Exception:
            logger.warning('failed to release audio playback', exc_info=True)

    async def stop(self) -> None:
        self._token += 1
        await self._release()
        await self._set_active(None)

    async def toggle(self, message_id: str, text: str) -> None:
        """Stop `message_id` if it is playing, otherwise read `text` aloud in its place."""
        if message_id == self.active_id:
            await self.stop()
            return

        self._token += 1
        token = self._token
        await self._release()
        await self._set_active(message_id)

        try:
            pcm = await self.synthesizer.synthesize(normalize_speech_text(text))
        except Exception:
            logger.error('speech synthesis failed for message %s', message_id, exc_info=True)
            if token == self._token:
                await self._set_active(None)
            return

        if token != self._token:
            logger.debug('discarding superseded audio for message %s', message_id)
            return

        try:
            handle = await self.player.play(pcm)
        except Exception:
            logger.error('audio playback failed for message %s', message_id, exc_info=True)
            if token == self._token:
                await self._set_active(None)
            return
        if token != self._token:
            # superseded while the player was starting
            await handle.stop()
            return
        self._handle = handle
        self._watcher = asyncio.create_task(self._watch(handle, token))

    async def _watch(self, handle: PlaybackHandle, token: int) -> None:
        try:
            await handle.wait()
        except Exception:
            logger.warning('audio playback ended abnormally', exc_info=True)
        if token != self._token or self._handle is not handle:
            return
        await self._release()
        await self._set_active(None)
