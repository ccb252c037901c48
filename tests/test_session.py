from __future__ import annotations

import asyncio

import pytest

from conftest import ScriptedGenerator
from core.agents.assistant import LangGraphGenerator
from core.errors import InvariantViolation
from core.session import SessionState, StreamingSession, build_history
from models import ERROR_TEXT, WELCOME_ID, Message, Role


class Recorder:
    def __init__(self):
        self.events = []

    async def __call__(self, event):
        self.events.append(event)

    def of_type(self, type_):
        return [e for e in self.events if e["type"] == type_]


@pytest.mark.asyncio
async def test_fragments_accumulate_into_placeholder(log):
    session = StreamingSession(log, ScriptedGenerator(["Hel", "lo", " world"]))

    assert await session.start("hi")

    reply = log.tail
    assert reply.role == Role.MODEL
    assert reply.text == "Hello world"
    assert reply.is_streaming is False
    assert session.state == SessionState.IDLE
    assert session.last_outcome == SessionState.COMPLETED
    assert [m.role for m in log] == [Role.MODEL, Role.USER, Role.MODEL]


@pytest.mark.asyncio
async def test_empty_fragments_are_skipped(log):
    notify = Recorder()
    session = StreamingSession(log, ScriptedGenerator(["a", "", "b"]), notify)
    await session.start("hi")
    assert log.tail.text == "ab"
    assert [e["text"] for e in notify.of_type("token")] == ["a", "b"]


@pytest.mark.asyncio
async def test_state_transitions_are_published_in_order(log):
    notify = Recorder()
    session = StreamingSession(log, ScriptedGenerator(["x"]), notify)
    await session.start("hi")
    states = [e["state"] for e in notify.of_type("status")]
    assert states == ["dispatched", "streaming", "idle"]
    assert notify.of_type("done") == [
        {"type": "done", "outcome": "completed", "message_id": log.tail.id},
    ]


@pytest.mark.asyncio
async def test_blank_text_is_rejected(log):
    session = StreamingSession(log, ScriptedGenerator(["x"]))
    assert await session.start("   ") is False
    assert len(log) == 1


@pytest.mark.asyncio
async def test_matching_user_tail_is_reused_not_duplicated(log):
    user = Message(role=Role.USER, text="again", timestamp=log.next_timestamp())
    log.append(user)
    lengths = []
    generator = ScriptedGenerator(["ok"], on_send=lambda: lengths.append(len(log)))
    session = StreamingSession(log, generator)

    await session.start("again")

    assert lengths == [2]
    assert [m.role for m in log] == [Role.MODEL, Role.USER, Role.MODEL]
    assert log[1] is user


@pytest.mark.asyncio
async def test_start_is_rejected_while_streaming(log):
    gate = asyncio.Event()
    session = StreamingSession(log, ScriptedGenerator(["a", "b"], gate=gate))

    first = asyncio.create_task(session.start("one"))
    while session.state != SessionState.STREAMING:
        await asyncio.sleep(0)
    length = len(log)

    assert await session.start("two") is False
    assert len(log) == length

    gate.set()
    assert await first
    assert log.tail.text == "ab"
    assert [m.text for m in log if m.role == Role.USER] == ["one"]


@pytest.mark.asyncio
async def test_start_is_rejected_while_dispatched(log):
    release = asyncio.Event()

    class SlowGenerator(ScriptedGenerator):
        async def send(self, history, new_text):
            await release.wait()
            return await super().send(history, new_text)

    session = StreamingSession(log, SlowGenerator(["a"]))
    first = asyncio.create_task(session.start("one"))
    await asyncio.sleep(0)
    assert session.state == SessionState.DISPATCHED
    assert await session.start("two") is False
    release.set()
    await first
    assert [m.text for m in log if m.role == Role.USER] == ["one"]


@pytest.mark.asyncio
async def test_dispatch_failure_appends_error_notice(log):
    session = StreamingSession(log, ScriptedGenerator(fail_on_send=True))

    assert await session.start("hi")

    tail = log.tail
    assert tail.is_error and not tail.is_streaming
    assert tail.text == ERROR_TEXT
    assert session.last_outcome == SessionState.FAILED
    assert session.state == SessionState.IDLE


@pytest.mark.asyncio
async def test_mid_stream_failure_keeps_partial_text(log):
    session = StreamingSession(log, ScriptedGenerator(["par", "tial", "never"], fail_after=2))

    await session.start("hi")

    tail = log.tail
    assert tail.text == "partial"
    assert not tail.is_streaming and not tail.is_error
    assert session.last_outcome == SessionState.FAILED
    # partial replies stay as they are, only an empty reply becomes the failure notice
    assert [m.role for m in log] == [Role.MODEL, Role.USER, Role.MODEL]
    assert not any(m.is_error for m in log)


@pytest.mark.asyncio
async def test_failure_before_first_fragment_replaces_placeholder_with_notice(log):
    notify = Recorder()
    session = StreamingSession(log, ScriptedGenerator(["never"], fail_after=0), notify)

    assert await session.start("hi")

    assert [(m.role, m.text) for m in log][1:] == [(Role.USER, "hi"), (Role.MODEL, ERROR_TEXT)]
    assert log.tail.is_error and not log.tail.is_streaming
    assert log.streaming_message() is None
    assert notify.of_type("done") == [{"type": "done", "outcome": "failed", "message_id": None}]


@pytest.mark.asyncio
async def test_lazy_langgraph_stream_failure_shows_notice_and_retry_works(log):
    class UnreachableAgent:
        def astream_events(self, payload, version):
            async def events():
                raise ConnectionError("connection refused")
                yield {}
            return events()

    session = StreamingSession(log, LangGraphGenerator("unused", agent=UnreachableAgent()))
    await session.start("hi")

    assert log.tail.is_error
    assert log.tail.text == ERROR_TEXT
    assert [m.role for m in log] == [Role.MODEL, Role.USER, Role.MODEL]

    session.generator = ScriptedGenerator(["back"])
    await session.start("hi")
    assert [(m.role, m.text) for m in log][1:] == [(Role.USER, "hi"), (Role.MODEL, "back")]


@pytest.mark.asyncio
async def test_invariant_violation_is_not_absorbed(log):
    log.append(Message(role=Role.MODEL, text="stuck", timestamp=log.next_timestamp(), is_streaming=True))
    session = StreamingSession(log, ScriptedGenerator(["x"]))

    with pytest.raises(InvariantViolation):
        await session.start("hi")

    assert not any(m.is_error for m in log)
    assert session.state == SessionState.IDLE


@pytest.mark.asyncio
async def test_stream_returned_after_reset_is_closed(log):
    release = asyncio.Event()
    closed = []

    async def stream():
        try:
            yield {"type": "token", "text": "late"}
        finally:
            closed.append(True)

    class SlowGenerator:
        async def send(self, history, new_text):
            await release.wait()
            gen = stream()
            await gen.__anext__()
            return gen

    session = StreamingSession(log, SlowGenerator())
    task = asyncio.create_task(session.start("hi"))
    await asyncio.sleep(0)
    log.clear()
    session.reset()
    release.set()
    await task

    assert closed == [True]
    assert [m.id for m in log] == [WELCOME_ID]


@pytest.mark.asyncio
async def test_error_is_dropped_before_next_turn(log):
    session = StreamingSession(log, ScriptedGenerator(fail_on_send=True))
    await session.start("hi")
    assert log.tail.is_error

    session.generator = ScriptedGenerator(["fine"])
    await session.start("hi")

    assert [m.role for m in log] == [Role.MODEL, Role.USER, Role.MODEL]
    assert not any(m.is_error for m in log)
    assert log.tail.text == "fine"


@pytest.mark.asyncio
async def test_history_excludes_greeting_errors_and_current_turn(log):
    generator = ScriptedGenerator(["a1"])
    session = StreamingSession(log, generator)
    await session.start("q1")
    session.generator = ScriptedGenerator(fail_on_send=True)
    await session.start("q2")
    session.generator = generator
    await session.start("q3")

    history, new_text = generator.calls[-1]
    assert new_text == "q3"
    assert history == [
        {"role": "user", "text": "q1"},
        {"role": "model", "text": "a1"},
        {"role": "user", "text": "q2"},
    ]


def test_build_history_skips_live_placeholder(log):
    log.append(Message(role=Role.USER, text="q", timestamp=log.next_timestamp()))
    log.append(Message(role=Role.MODEL, timestamp=log.next_timestamp(), is_streaming=True))
    assert build_history(log) == [{"role": "user", "text": "q"}]


@pytest.mark.asyncio
async def test_updates_after_reset_are_dropped(log):
    gate = asyncio.Event()
    notify = Recorder()
    session = StreamingSession(log, ScriptedGenerator(["a", "b"], gate=gate), notify)

    task = asyncio.create_task(session.start("hi"))
    while session.state != SessionState.STREAMING:
        await asyncio.sleep(0)

    log.clear()
    session.reset()
    assert session.state == SessionState.IDLE
    gate.set()
    await task

    assert [m.id for m in log] == [WELCOME_ID]
    assert notify.of_type("token") == []
    assert notify.of_type("done") == []
    assert session.state == SessionState.IDLE


@pytest.mark.asyncio
async def test_failure_after_reset_does_not_append_error(log):
    release = asyncio.Event()

    class FlakyGenerator:
        async def send(self, history, new_text):
            await release.wait()
            raise ConnectionError("late failure")

    session = StreamingSession(log, FlakyGenerator())
    task = asyncio.create_task(session.start("hi"))
    await asyncio.sleep(0)
    log.clear()
    session.reset()
    release.set()
    await task
    assert [m.id for m in log] == [WELCOME_ID]


@pytest.mark.asyncio
async def test_only_one_streaming_message_during_stream(log):
    gate = asyncio.Event()
    session = StreamingSession(log, ScriptedGenerator(["a"], gate=gate))
    task = asyncio.create_task(session.start("hi"))
    while session.state != SessionState.STREAMING:
        await asyncio.sleep(0)
    assert sum(m.is_streaming for m in log) == 1
    gate.set()
    await task
    assert sum(m.is_streaming for m in log) == 0


@pytest.mark.asyncio
async def test_timestamps_never_decrease(log):
    session = StreamingSession(log, ScriptedGenerator(["x"]))
    for text in ("a", "b", "c"):
        await session.start(text)
    stamps = [m.timestamp for m in log]
    assert stamps == sorted(stamps)
