"""Decides what follows a completed interval and fires its side effects."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from pomofocus.timer.models import (
    CompletionDecision,
    CompletionEvent,
    TimerMode,
    TimerState,
)
from pomofocus.timer.ports import (
    AudioPlayer,
    NotificationPermission,
    Notifier,
    NullAudio,
    NullNotifier,
    NullRecorder,
    SessionRecorder,
)

if TYPE_CHECKING:
    from pomofocus.core.config import TimerConfig

logger = logging.getLogger(__name__)

NOTIFICATION_TITLE = "Pomodoro Timer"


class CompletionPolicy:
    """Completion policy for the timer engine.

    The decision itself is pure (see ``decide``). Side effects (sound,
    notification, session recording) are scheduled as background tasks so the
    engine never waits on them, and each one is isolated from the others.
    """

    def __init__(
        self,
        recorder: SessionRecorder | None = None,
        notifier: Notifier | None = None,
        audio: AudioPlayer | None = None,
    ):
        self.recorder = recorder or NullRecorder()
        self.notifier = notifier or NullNotifier()
        self.audio = audio or NullAudio()
        self._pending: set[asyncio.Task] = set()

    @staticmethod
    def decide(
        completed_mode: TimerMode, completed_count: int, config: TimerConfig
    ) -> CompletionDecision:
        """Pick the next mode and whether it starts on its own."""
        if completed_mode == TimerMode.POMODORO:
            count = completed_count + 1
            if count % config.long_break_interval == 0:
                next_mode = TimerMode.LONG_BREAK
            else:
                next_mode = TimerMode.SHORT_BREAK
            kind = "long" if next_mode == TimerMode.LONG_BREAK else "short"
            return CompletionDecision(
                next_mode=next_mode,
                auto_start=config.auto_start_break,
                completed_pomodoro_count=count,
                message=f"Pomodoro complete! Time for a {kind} break.",
            )

        return CompletionDecision(
            next_mode=TimerMode.POMODORO,
            auto_start=config.auto_start_pomodoro,
            completed_pomodoro_count=completed_count,
            message="Break complete! Ready for another Pomodoro?",
        )

    def on_complete(
        self, event: CompletionEvent, state: TimerState, config: TimerConfig
    ) -> CompletionDecision:
        """Handle a zero-crossing. Must be called from a running event loop.

        Port calls happen inside the spawned tasks, so a port that fails
        synchronously is isolated like one that fails while awaited.
        """
        decision = self.decide(event.completed_mode, state.completed_pomodoro_count, config)

        if config.sound_enabled:
            self._spawn(lambda: self.audio.play(config.volume), "sound")

        if config.notifications_enabled:
            self._spawn(lambda: self._notify(decision.message), "notification")

        self._spawn(lambda: self._record(event), "session recorder")

        logger.info(
            f"{event.completed_mode.value} complete, next: {decision.next_mode.value}"
            f" (auto_start={decision.auto_start})"
        )
        return decision

    async def drain(self) -> None:
        """Wait for all scheduled side effects to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def _notify(self, body: str) -> None:
        permission = self.notifier.permission
        if permission == NotificationPermission.UNDETERMINED:
            permission = await self.notifier.request_permission()
        if permission == NotificationPermission.GRANTED:
            await self.notifier.notify(NOTIFICATION_TITLE, body)

    async def _record(self, event: CompletionEvent) -> None:
        try:
            ok = await self.recorder.record_completed_interval(
                event, event.associated_task_id
            )
        except Exception as e:
            logger.error(f"Failed to record {event.completed_mode.value} session: {e}")
            return
        if not ok:
            logger.warning(f"Session recorder rejected {event.completed_mode.value} session")

    def _spawn(self, effect: Callable[[], Awaitable[None]], label: str) -> None:
        task = asyncio.ensure_future(self._isolated(effect, label))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    @staticmethod
    async def _isolated(effect: Callable[[], Awaitable[None]], label: str) -> None:
        try:
            await effect()
        except Exception as e:
            logger.debug(f"Completion side effect failed ({label}): {e}")
