"""
Runtime settings, read from the environment after loading `.env`.
"""
import logging
import os
import shlex
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_AUDIO_PLAYER = "aplay -q -t raw -f S16_LE -r 24000 -c 1 -"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning('%s=%r is not an integer, using %d', name, raw, default)
        return default
    if value <= 0:
        logger.warning('%s=%r must be positive, using %d', name, raw, default)
        return default
    return value


@dataclass
class Settings:
    chat_model: str = 'gpt-4o-mini'
    tts_model: str = 'gpt-4o-mini-tts'
    tts_voice: str = 'alloy'
    history_dir: Path = field(default_factory=lambda: Path.home() / '.jenesi')
    conversation_id: str = 'jenesi_chat_history'
    load_batch_size: int = 20
    audio_player: list[str] = field(default_factory=lambda: shlex.split(DEFAULT_AUDIO_PLAYER))
    log_level: str = 'INFO'

    @classmethod
    def from_env(cls, dotenv: bool = True) -> 'Settings':
        """
        Build settings from `JENESI_*` environment variables.

        Args:
            dotenv (bool): load a `.env` file into the environment first
        """
        if dotenv:
            load_dotenv()

        defaults = cls()
        history_dir = os.getenv('JENESI_HISTORY_DIR')
        player = os.getenv('JENESI_AUDIO_PLAYER')
        return cls(
            chat_model=os.getenv('JENESI_CHAT_MODEL', defaults.chat_model),
            tts_model=os.getenv('JENESI_TTS_MODEL', defaults.tts_model),
            tts_voice=os.getenv('JENESI_TTS_VOICE', defaults.tts_voice),
            history_dir=Path(history_dir).expanduser() if history_dir else defaults.history_dir,
            conversation_id=os.getenv('JENESI_CONVERSATION_ID', defaults.conversation_id),
            load_batch_size=_env_int('JENESI_LOAD_BATCH_SIZE', defaults.load_batch_size),
            audio_player=shlex.split(player) if player else defaults.audio_player,
            log_level=os.getenv('JENESI_LOG_LEVEL', defaults.log_level).upper(),
        )
