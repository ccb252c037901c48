"""
Speech synthesis and raw PCM output.

The synthesizer returns 24 kHz, 16-bit, mono PCM. Output goes to an external
player process reading PCM on stdin, so releasing a playback is just
terminating that process.
"""
import asyncio
import logging
import re
from typing import Optional, Protocol

from openai import AsyncOpenAI

from core.errors import SpeechError

logger = logging.getLogger(__name__)

_MARKUP_RE = re.compile(r"[*#`_]")
_CONTROL_RE = re.compile(r"[\x00-\x08\x0b-\x1f\x7f]")


def normalize_speech_text(text: str) -> str:
    """Strip Markdown markers and control characters before synthesis."""
    return _CONTROL_RE.sub('', _MARKUP_RE.sub('', text)).strip()


class Synthesizer(Protocol):
    async def synthesize(self, text: str) -> bytes: ...


class PlaybackHandle(Protocol):
    async def wait(self) -> None: ...

    async def stop(self) -> None: ...


class Player(Protocol):
    async def play(self, pcm: bytes) -> PlaybackHandle: ...


class OpenAISpeechSynthesizer:
    def __init__(self, model: str, voice: str, client: Optional[AsyncOpenAI] = None):
        self.model = model
        self.voice = voice
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI()
        return self._client

    async def synthesize(self, text: str) -> bytes:
        response = await self.client.audio.speech.create(
            model=self.model,
            voice=self.voice,
            input=text,
            response_format='pcm',
        )
        audio = response.content
        if not audio:
            raise SpeechError('no audio data received')
        return audio


class SubprocessPlayback:
    def __init__(self, proc: asyncio.subprocess.Process, pcm: bytes):
        self.proc = proc
        self._feeder = asyncio.create_task(self._feed(pcm))
        self._stopped = False

    async def _feed(self, pcm: bytes) -> None:
        stdin = self.proc.stdin
        if stdin is None:
            return
        try:
            stdin.write(pcm)
            await stdin.drain()
        except (BrokenPipeError, ConnectionResetError):
            # player exited early (stopped or failed), nothing left to feed
            pass
        finally:
            stdin.close()

    async def wait(self) -> None:
        code = await self.proc.wait()
        if code and not self._stopped:
            logger.warning('audio player exited with code %s', code)

    async def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        if self.proc.returncode is None:
            try:
                self.proc.terminate()
            except ProcessLookupError:
                pass
        await self.proc.wait()
        self._feeder.cancel()


class SubprocessPcmPlayer:
    def __init__(self, command: list[str]):
        if not command:
            raise ValueError('audio player command is empty')
        self.command = list(command)

    async def play(self, pcm: bytes) -> SubprocessPlayback:
        proc = await asyncio.create_subprocess_exec(
            *self.command,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
        )
        logger.debug('audio player started (pid=%d)', proc.pid)
        return SubprocessPlayback(proc, pcm)
