"""Translate external commands and key presses into timer operations."""

from __future__ import annotations

import logging
from enum import Enum

from pomofocus.timer.engine import TimerEngine
from pomofocus.timer.models import TimerMode, TimerStatus

logger = logging.getLogger(__name__)


class TimerCommand(str, Enum):
    """Commands accepted from the CLI, the web API and key bindings."""

    START = "start"
    PAUSE = "pause"
    TOGGLE = "toggle"
    RESET = "reset"
    SWITCH_MODE = "switch_mode"
    SELECT_TASK = "select_task"


# Single-key shortcuts, as bound in the browser client
KEY_BINDINGS: dict[str, tuple[TimerCommand, TimerMode | None]] = {
    " ": (TimerCommand.TOGGLE, None),
    "space": (TimerCommand.TOGGLE, None),
    "r": (TimerCommand.RESET, None),
    "1": (TimerCommand.SWITCH_MODE, TimerMode.POMODORO),
    "2": (TimerCommand.SWITCH_MODE, TimerMode.SHORT_BREAK),
    "3": (TimerCommand.SWITCH_MODE, TimerMode.LONG_BREAK),
}


class ControlAdapter:
    """Maps commands 1:1 onto the engine and holds the selected task.

    The selected task is what completed pomodoros get credited to; choosing
    one never touches the timer state.
    """

    def __init__(self, engine: TimerEngine):
        self.engine = engine
        self._current_task_id: str | None = None
        if engine.task_provider is None:
            engine.task_provider = lambda: self._current_task_id

    @property
    def current_task_id(self) -> str | None:
        return self._current_task_id

    def select_task(self, task_id: str | None) -> None:
        self._current_task_id = task_id or None
        logger.info(f"Selected task: {self._current_task_id}")

    async def dispatch(
        self,
        command: TimerCommand | str,
        *,
        mode: TimerMode | str | None = None,
        task_id: str | None = None,
    ) -> None:
        """Apply a command to the engine."""
        command = TimerCommand(command)

        if command == TimerCommand.START:
            await self.engine.start()
        elif command == TimerCommand.PAUSE:
            await self.engine.pause()
        elif command == TimerCommand.TOGGLE:
            if self.engine.state.status == TimerStatus.RUNNING:
                await self.engine.pause()
            else:
                await self.engine.start()
        elif command == TimerCommand.RESET:
            await self.engine.reset()
        elif command == TimerCommand.SWITCH_MODE:
            if mode is None:
                raise ValueError("switch_mode requires a mode")
            await self.engine.switch_mode(mode)
        elif command == TimerCommand.SELECT_TASK:
            self.select_task(task_id)

    async def handle_key(self, key: str, *, text_entry_focused: bool = False) -> bool:
        """Handle a shortcut key. Returns True if the key was consumed.

        Keys are ignored while the user is typing into a text field.
        """
        if text_entry_focused:
            return False

        binding = KEY_BINDINGS.get(key if key == " " else key.lower())
        if binding is None:
            return False

        command, mode = binding
        await self.dispatch(command, mode=mode)
        return True
