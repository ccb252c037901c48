
from typing import Any, AsyncIterator, Dict, Mapping, Optional
from core.domain import TokenEvent


def _extract_text(data: Mapping[str, Any]) -> Optional[str]:
    ch = data.get('chunk')
    if isinstance(ch, str):
        return ch or None

    text = getattr(ch, 'content', None)
    if isinstance(text, list):
        # content blocks, e.g. [{'type': 'text', 'text': '...'}]
        text = ''.join(
            part.get('text', '') for part in text
            if isinstance(part, dict) and part.get('type') == 'text'
        )
    return text if isinstance(text, str) and text else None


async def adapt_events(stream: AsyncIterator[Dict[str, Any]]) -> AsyncIterator[TokenEvent]:
    """
    Convert langgraph `astream_events` output into token events.

    Only chat model stream chunks carry response text; every other event
    (chain start/end, node bookkeeping) is dropped.
    """
    async for ev in stream:
        if ev.get('event') != 'on_chat_model_stream':
            continue
        text = _extract_text(ev.get('data') or {})
        if text:
            yield {'type': 'token', 'text': text}
