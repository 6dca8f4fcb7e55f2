"""Playback state machine.

Steps through the command store one command at a time:

  1. Render the command's scene snapshot (awaits the renderer).
  2. dialogue/action → reveal the text character by character (TYPING), then
     wait for input (AWAITING_INPUT). In auto mode or while streaming an
     auto-advance is armed after the reveal.
     characters     → advance straight away; a mood change has nothing to read.
     location       → wait for input, or auto-advance in auto/streaming mode.
  3. Past the last command: WAITING_FOR_MORE while the script is still
     streaming in, ENDED otherwise. Nothing on screen is cleared.

Only one timer task (`_pending`) exists at a time: the running reveal or the
armed auto-advance. It is cancelled before another is armed and whenever the
user moves the cursor. Every command processed bumps `_session`; a render that
resolves after the user has moved on is dropped.

advance() during a reveal only skips the reveal. Moving on is a second advance.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Coroutine, Literal

from vn_engine.config import AUTO_SPEED_RANGE, TEXT_SPEED_RANGE, PlayerSettings, clamp
from vn_engine.models import (
    ActionCommand,
    CharactersCommand,
    Command,
    DialogueCommand,
    SceneContext,
)
from vn_engine.parser import parse_script
from vn_engine.scene import SceneRenderer
from vn_engine.store import CommandStore

logger = logging.getLogger(__name__)

WELCOME_TEXT = "Load a script to begin your visual novel experience..."
READY_TEXT = "Click or press Space to begin..."
COMPLETED_TEXT = "Story completed. Click to restart or load new script."
NARRATION_LABEL = "Narration"

InputAction = Literal["advance", "back", "skip", "toggle_auto"]


class PlaybackState(str, Enum):
    IDLE = "idle"
    PLAYING = "playing"  # rendering the current command
    TYPING = "typing"
    AWAITING_INPUT = "awaiting_input"
    WAITING_FOR_MORE = "waiting_for_more"
    ENDED = "ended"


@dataclass
class DisplayState:
    speaker: str = ""
    text: str = ""
    show_continue: bool = False


class PlaybackController:
    """Drives a CommandStore through a SceneRenderer and a text display.

    Args:
        renderer:   Scene renderer; render_command() must always resolve.
        settings:   Speeds and delays. Defaults to PlayerSettings().
        sleep:      Awaitable delay in seconds. Tests pass a no-wait version.
        on_display: Called with the DisplayState after every change.
    """

    def __init__(
        self,
        renderer: SceneRenderer,
        settings: PlayerSettings | None = None,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        on_display: Callable[[DisplayState], None] | None = None,
    ) -> None:
        self.renderer = renderer
        self.settings = settings or PlayerSettings()
        self.store = CommandStore()
        self.state = PlaybackState.IDLE
        self.streaming = False
        self.auto_mode = self.settings.auto_mode
        self.text_speed = self.settings.text_speed
        self.auto_speed = self.settings.auto_speed
        self.transition_points: list[str] = []
        self.current_command: Command | None = None
        self.display = DisplayState(text=WELCOME_TEXT)

        self._context = SceneContext()
        self._pending: asyncio.Task | None = None
        self._session = 0
        self._sleep = sleep
        self._on_display = on_display

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load_script(self, text: str, append: bool = False) -> list[Command]:
        """Parse script text into the store. Returns the new commands.

        Replace mode discards the old script, scene and position. Append mode
        parses against the running scene context and adds to the end without
        touching the cursor or the playback state.
        """
        if append:
            result = parse_script(text, self._context)
            self.store.append(result.commands)
        else:
            self._cancel_pending()
            self._session += 1
            result = parse_script(text)
            self.store.replace(result.commands)
            self.transition_points = []
            self.current_command = None
            self.state = PlaybackState.IDLE
            self.renderer.reset()
            self._show("", READY_TEXT, show_continue=False)

        self._context = result.context
        if result.transition_points is not None:
            self.transition_points = result.transition_points
        logger.debug(
            "loaded %d commands (append=%s, total=%d)",
            len(result.commands), append, len(self.store),
        )
        return result.commands

    async def start_playback(self) -> None:
        if not len(self.store):
            return
        self.store.reset()
        await self._process_current()

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    async def advance(self) -> None:
        if self.state is PlaybackState.TYPING:
            self.skip_text()
            return
        if self.state is PlaybackState.IDLE:
            await self.start_playback()
            return
        if self.state is PlaybackState.WAITING_FOR_MORE:
            return
        self._cancel_pending()
        await self._step_forward()

    async def retreat(self) -> None:
        if self.state is PlaybackState.TYPING:
            self.skip_text()
            return
        if not self.store.retreat():
            return
        # Stepping onto a characters line would bounce straight forward again.
        while isinstance(self.store.current(), CharactersCommand) and self.store.retreat():
            pass
        await self._process_current()

    def skip_text(self) -> None:
        """Finish the running reveal at once, showing the full text."""
        if self.state is not PlaybackState.TYPING:
            return
        self._cancel_pending()
        command = self.current_command
        if isinstance(command, (DialogueCommand, ActionCommand)):
            self.display.text = command.text
        self._finish_reveal(self._session)

    async def resume_from_waiting(self) -> None:
        """Pick up newly appended commands after running out mid-stream."""
        if self.state is not PlaybackState.WAITING_FOR_MORE:
            return
        if self.store.advance():
            await self._process_current()
        elif not self.streaming:
            self.state = PlaybackState.ENDED
            logger.debug("stream finished with no further commands")

    async def handle_input(self, action: InputAction) -> None:
        """User click/key/touch. Advancement is ignored while streaming."""
        if action == "toggle_auto":
            self.toggle_auto_mode()
            return
        if self.streaming:
            logger.debug("ignoring %s input while streaming", action)
            return
        if action == "advance":
            await self.advance()
        elif action == "back":
            await self.retreat()
        elif action == "skip":
            self.skip_text()

    def end_playback(self) -> None:
        self._cancel_pending()
        self.state = PlaybackState.ENDED
        self._show("", COMPLETED_TEXT, show_continue=False)

    # ------------------------------------------------------------------
    # Modes and settings
    # ------------------------------------------------------------------

    def begin_streaming(self) -> None:
        self.streaming = True

    def end_streaming(self) -> None:
        self.streaming = False

    def toggle_auto_mode(self) -> None:
        self.auto_mode = not self.auto_mode
        logger.info("Auto mode: %s", "ON" if self.auto_mode else "OFF")
        if self.state is not PlaybackState.AWAITING_INPUT:
            return
        if self.auto_mode:
            self._arm_auto_advance(self.auto_speed, self._session)
        elif not self.streaming:
            self._cancel_pending()

    def set_text_speed(self, speed: int) -> None:
        self.text_speed = clamp(speed, TEXT_SPEED_RANGE)

    def set_auto_speed(self, speed: int) -> None:
        self.auto_speed = clamp(speed, AUTO_SPEED_RANGE)

    def game_state(self) -> dict[str, Any]:
        progress = self.store.progress()
        state: dict[str, Any] = {
            "state": self.state.value,
            "streaming": self.streaming,
            "auto_mode": self.auto_mode,
            "current_command": self.current_command.model_dump() if self.current_command else None,
            "progress": progress._asdict(),
            "display": asdict(self.display),
            "transition_points": list(self.transition_points),
        }
        scene_state = getattr(self.renderer, "state", None)
        if callable(scene_state):
            state["scene"] = scene_state()
        return state

    # ------------------------------------------------------------------
    # Command processing
    # ------------------------------------------------------------------

    async def _step_forward(self) -> None:
        if self.store.advance():
            await self._process_current()
        else:
            self._exhausted()

    def _exhausted(self) -> None:
        if self.streaming:
            self.state = PlaybackState.WAITING_FOR_MORE
            logger.debug("waiting for more commands at %d", self.store.cursor)
        else:
            self.state = PlaybackState.ENDED

    async def _process_current(self) -> None:
        self._cancel_pending()
        self._session += 1
        session = self._session

        command = self.store.current()
        if command is None:
            self._exhausted()
            return

        self.current_command = command
        self.state = PlaybackState.PLAYING
        await self.renderer.render_command(command)
        if session != self._session:
            logger.debug("render of %s superseded", command.type)
            return

        if isinstance(command, (DialogueCommand, ActionCommand)):
            self._start_reveal(command, session)
        elif isinstance(command, CharactersCommand):
            await self._step_forward()
        else:
            self.state = PlaybackState.AWAITING_INPUT
            if self.streaming or self.auto_mode:
                self._arm_auto_advance(self.settings.location_advance_ms, session)

    def _start_reveal(self, command: DialogueCommand | ActionCommand, session: int) -> None:
        speaker = command.speaker if isinstance(command, DialogueCommand) else NARRATION_LABEL
        self.state = PlaybackState.TYPING
        self._show(speaker, "", show_continue=False)
        self._arm(self._reveal(command.text, session))

    async def _reveal(self, text: str, session: int) -> None:
        for char in text:
            await self._sleep(self.text_speed / 1000)
            self.display.text += char
            self._notify()
        self._pending = None
        self._finish_reveal(session)

    def _finish_reveal(self, session: int) -> None:
        self.state = PlaybackState.AWAITING_INPUT
        self.display.show_continue = True
        self._notify()
        if self.streaming:
            self._arm_auto_advance(self.settings.streaming_advance_ms, session)
        elif self.auto_mode:
            self._arm_auto_advance(self.auto_speed, session)

    def _arm_auto_advance(self, delay_ms: int, session: int) -> None:
        self._arm(self._auto_advance(delay_ms, session))

    async def _auto_advance(self, delay_ms: int, session: int) -> None:
        await self._sleep(delay_ms / 1000)
        if session != self._session or self.state is not PlaybackState.AWAITING_INPUT:
            return
        self._pending = None
        await self._step_forward()

    # ------------------------------------------------------------------
    # Timer handle and display helpers
    # ------------------------------------------------------------------

    def _arm(self, coro: Coroutine[Any, Any, None]) -> None:
        self._cancel_pending()
        self._pending = asyncio.create_task(coro)

    def _cancel_pending(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _show(self, speaker: str, text: str, show_continue: bool) -> None:
        self.display.speaker = speaker
        self.display.text = text
        self.display.show_continue = show_continue
        self._notify()

    def _notify(self) -> None:
        if self._on_display is not None:
            self._on_display(self.display)
