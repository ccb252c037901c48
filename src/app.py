"""
JENESI assistant - terminal chat client
"""

import asyncio
import logging
from typing import Optional

from textual import on, work
from textual.app import App, ComposeResult
from textual.containers import Horizontal
from textual.css.query import NoMatches
from textual.logging import TextualHandler
from textual.timer import Timer
from textual.widgets import Button, Footer, Input, Static

from core.agents.assistant import LangGraphGenerator
from core.config import Settings
from core.intent import smart_suggestions
from core.orchestrator import Orchestrator
from core.session import SessionState
from core.speech import OpenAISpeechSynthesizer, SubprocessPcmPlayer
from core.store import JsonConversationStore
from screens import ClearHistoryConfirmScreen
from widgets import BubbleAction, ChatLog, InputArea, SelectOption, SelectionMade

logger = logging.getLogger(__name__)

SUGGESTION_DEBOUNCE_SECONDS = 0.3

STATUS_TEXT = {
    SessionState.DISPATCHED: "[bold magenta]⟳ Processing...[/bold magenta]",
    SessionState.STREAMING: "[bold magenta]⟳ Streaming...[/bold magenta]",
}
ONLINE_TEXT = "[green]●[/green] Online"


class ChatApp(App):
    CSS = """
#top_bar {
    height: 1;
    padding: 0 1;
}
#status {
    width: 1fr;
}
#clear {
    min-width: 7;
    height: 1;
    border: none;
}
#latest {
    dock: bottom;
    height: 1;
    min-width: 12;
    border: none;
    display: none;
}
    """
    BINDINGS = [
        ('ctrl+l', 'clear_history', 'Clear history'),
        ('ctrl+r', 'retry', 'Retry'),
        ('ctrl+g', 'regenerate', 'Regenerate'),
        ('escape', 'hide_suggestions', 'Hide suggestions'),
    ]

    def __init__(self, settings: Settings, orchestrator: Optional[Orchestrator] = None):
        """Wire the controller to its collaborators; tests inject a prebuilt orchestrator."""
        super().__init__()
        self.settings = settings
        self.event_q: asyncio.Queue = asyncio.Queue()
        if orchestrator is None:
            orchestrator = Orchestrator(
                self.event_q,
                LangGraphGenerator(settings.chat_model),
                OpenAISpeechSynthesizer(settings.tts_model, settings.tts_voice),
                SubprocessPcmPlayer(settings.audio_player),
                JsonConversationStore(settings.history_dir),
                settings.conversation_id,
                batch_size=settings.load_batch_size,
            )
        else:
            self.event_q = orchestrator.events_q
        self.orchestrator = orchestrator

        self._suggest_timer: Optional[Timer] = None
        self._suggestions_dismissed = False

    def compose(self) -> ComposeResult:
        with Horizontal(id="top_bar"):
            yield Static(ONLINE_TEXT, id="status", markup=True)
            yield Button("Clear", id="clear", variant="error")
        yield ChatLog(id="chat_log")
        yield Button("↓ Latest", id="latest")
        yield SelectOption(id="suggestions")
        yield InputArea(id="input_text", placeholder="Ask about code, science, business...")
        yield Footer()

    async def on_mount(self) -> None:
        self.title = "JENESI AI"
        self.orchestrator.load()
        await self._render_window(follow=True)
        self._show_suggestions(smart_suggestions(""))
        self.query_one('#input_text', InputArea).focus()
        self._pump()

    # -- rendering ----------------------------------------------------------

    async def _render_window(self, follow: bool = False) -> None:
        orch = self.orchestrator
        chat_log = self.query_one("#chat_log", ChatLog)
        await chat_log.show_window(
            orch.visible, orch.has_earlier, orch.playing_id, orch.can_regenerate(),
        )
        await chat_log.set_thinking(orch.state == SessionState.DISPATCHED)
        self.query_one('#clear', Button).display = len(orch.log) > 1
        self.query_one('#latest', Button).display = orch.window.scrolled_up
        if follow and not orch.window.scrolled_up:
            chat_log.follow()

    def _render_status(self) -> None:
        state = self.orchestrator.state
        self.query_one('#status', Static).update(STATUS_TEXT.get(state, ONLINE_TEXT))
        busy = self.orchestrator.busy
        self.query_one('#input_text', InputArea).disabled = busy
        if busy:
            self.query_one('#suggestions', SelectOption).display = False

    def _show_suggestions(self, labels: list[str]) -> None:
        sel = self.query_one('#suggestions', SelectOption)
        sel.set_selection_options(labels)
        sel.display = not self.orchestrator.busy and not self._suggestions_dismissed

    # -- event pump ---------------------------------------------------------

    @work(exclusive=True, group='pump')
    async def _pump(self):
        """
        Event processing loop.

        Event types handled:
        - 'log': structural log change, rebuild the visible window
        - 'token': a fragment was applied to the streaming placeholder
        - 'status' / 'done': session state changes
        - 'playback': the message being read aloud changed
        """
        while True:
            ev = await self.event_q.get()
            try:
                await self._handle_event(ev)
            except NoMatches:
                # widgets are gone: the app is shutting down
                logger.debug('pump stopped, dropping %s event', ev.get('type'))
                return

    async def _handle_event(self, ev) -> None:
        chat_log = self.query_one("#chat_log", ChatLog)
        type = ev.get("type", '')

        if type == "token":
            msg = self.orchestrator.log.get(ev.get('message_id', ''))
            if msg is not None:
                chat_log.update_message(msg)
                if not self.orchestrator.window.scrolled_up:
                    chat_log.follow()
        elif type in ('log', 'done', 'playback'):
            await self._render_window(follow=(type != 'playback'))
        elif type == 'status':
            self._render_status()
            await chat_log.set_thinking(ev.get('state') == SessionState.DISPATCHED.value)
            if ev.get('state') == SessionState.IDLE.value:
                self.query_one('#input_text', InputArea).focus()

    # -- workers --------------------------------------------------------------

    # Not exclusive: a second submit must be rejected by the session, not cancel the first.
    @work(group='infer')
    async def run_turn(self, text: str):
        await self.orchestrator.submit(text)

    @work(group='infer')
    async def run_retry(self):
        await self.orchestrator.retry()

    @work(group='infer')
    async def run_regenerate(self):
        await self.orchestrator.regenerate()

    @work(group='speech')
    async def run_toggle_playback(self, message_id: str):
        await self.orchestrator.toggle_playback(message_id)

    @work(exclusive=True, group='clear')
    async def _confirm_clear(self) -> None:
        confirmed = await self.push_screen_wait(ClearHistoryConfirmScreen(len(self.orchestrator.log)))
        if confirmed:
            await self.orchestrator.clear()
            self._suggestions_dismissed = False
            self._show_suggestions(smart_suggestions(""))

    # -- input handlers -------------------------------------------------------

    async def on_input_area_submit(self, message: InputArea.Submit) -> None:
        if self.orchestrator.busy:
            return
        self._submit(message.value)

    def _submit(self, text: str) -> None:
        self.query_one('#suggestions', SelectOption).display = False
        self.query_one('#latest', Button).display = False
        self.run_turn(text)

    @on(Input.Changed, '#input_text')
    def on_draft_changed(self, event: Input.Changed) -> None:
        if self._suggest_timer is not None:
            self._suggest_timer.stop()
        draft = event.value
        self._suggest_timer = self.set_timer(
            SUGGESTION_DEBOUNCE_SECONDS, lambda: self._show_suggestions(smart_suggestions(draft)),
        )

    async def on_selection_made(self, message: SelectionMade) -> None:
        if not self.orchestrator.busy:
            self._submit(message.value)

    async def on_bubble_action(self, message: BubbleAction) -> None:
        if message.action == 'speak':
            self.run_toggle_playback(message.message_id)
        elif message.action == 'copy':
            msg = self.orchestrator.log.get(message.message_id)
            if msg is not None:
                self.copy_to_clipboard(msg.text)
                self.notify("Copied to clipboard", timeout=2)
        elif message.action == 'retry':
            self.action_retry()
        elif message.action == 'regenerate':
            self.action_regenerate()

    async def on_chat_log_scrolled(self, message: ChatLog.Scrolled) -> None:
        chat_log = self.query_one("#chat_log", ChatLog)
        old_height = chat_log.virtual_size.height
        outcome = self.orchestrator.on_scroll(message.at_top, message.at_bottom)
        if outcome.grow.grew:
            await self._render_window()
            chat_log.keep_anchor(old_height)
        self.query_one('#latest', Button).display = outcome.scrolled_up

    @on(Button.Pressed, '#clear')
    def on_clear_pressed(self) -> None:
        self.action_clear_history()

    @on(Button.Pressed, '#latest')
    def on_latest_pressed(self) -> None:
        self.orchestrator.jump_to_latest()
        self.query_one('#latest', Button).display = False
        self.query_one("#chat_log", ChatLog).follow()

    # -- actions ----------------------------------------------------------------

    def action_clear_history(self) -> None:
        if len(self.orchestrator.log) > 1:
            self._confirm_clear()

    def action_retry(self) -> None:
        if not self.orchestrator.busy:
            self.run_retry()

    def action_regenerate(self) -> None:
        if self.orchestrator.can_regenerate():
            self.run_regenerate()

    def action_hide_suggestions(self) -> None:
        self._suggestions_dismissed = True
        self.query_one('#suggestions', SelectOption).display = False


def configure_logging(level: str) -> None:
    logging.basicConfig(level=level, handlers=[TextualHandler()])


def main():
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    app = ChatApp(settings)
    app.run()


if __name__ == "__main__":
    main()
