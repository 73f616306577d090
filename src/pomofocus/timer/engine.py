"""Pomodoro timer state machine driven by a one-second tick."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any

from pomofocus.core.config import TimerConfig
from pomofocus.timer.durations import resolve_duration
from pomofocus.timer.models import (
    CompletionDecision,
    CompletionEvent,
    TimerMode,
    TimerState,
    TimerStatus,
)
from pomofocus.timer.policy import CompletionPolicy

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class TimerEngine:
    """Pomodoro timer with state machine and callbacks.

    Every operation runs under one lock, so commands are applied in arrival
    order and a completed interval (policy decision, mode switch, auto-start
    arming) is fully handled before the next command is looked at.

    Usage:
        engine = TimerEngine(config)
        engine.on_tick = lambda state: print(state.display)

        await engine.start()
        await engine.pause()
        await engine.switch_mode(TimerMode.SHORT_BREAK)
        await engine.reset()

    With ``tick_interval=None`` no background ticker is spawned and the caller
    drives the countdown with ``await engine.tick()``.
    """

    def __init__(
        self,
        config: TimerConfig | None = None,
        policy: CompletionPolicy | None = None,
        *,
        tick_interval: float | None = 1.0,
        task_provider: Callable[[], str | None] | None = None,
    ):
        self.config = config or TimerConfig()
        self.policy = policy or CompletionPolicy()
        self.tick_interval = tick_interval
        self.task_provider = task_provider

        self._state = TimerState(
            mode=TimerMode.POMODORO,
            status=TimerStatus.IDLE,
            seconds_remaining=resolve_duration(TimerMode.POMODORO, self.config),
        )
        self._lock = asyncio.Lock()
        self._tick_task: asyncio.Task | None = None
        self._auto_start_task: asyncio.Task | None = None
        # Bumped whenever the countdown is cancelled; ticks from an older
        # generation are discarded.
        self._generation = 0
        self._interval_started_at: datetime | None = None

        # Callbacks
        self.on_tick: Callable[[TimerState], Awaitable[None] | None] | None = None
        self.on_state_change: Callable[[TimerState], Awaitable[None] | None] | None = None
        self.on_complete: Callable[
            [CompletionEvent, CompletionDecision], Awaitable[None] | None
        ] | None = None

    @property
    def state(self) -> TimerState:
        """Get current timer state (copy)."""
        return self._state.copy()

    def snapshot(self) -> dict[str, Any]:
        return self._state.to_dict()

    @property
    def auto_start_pending(self) -> bool:
        return self._auto_start_task is not None and not self._auto_start_task.done()

    def update_config(self, config: TimerConfig) -> None:
        """Use a new configuration from the next reset or mode switch on.

        A countdown in progress keeps its remaining time.
        """
        self.config = config

    async def start(self) -> None:
        """Start or resume the countdown."""
        async with self._lock:
            self._cancel_auto_start()
            changed = self._start_locked()
            state = self._state.copy()

        if changed:
            logger.info(f"Timer started: {state.mode.value} ({state.display})")
            await self._emit(self.on_state_change, state)

    async def pause(self) -> None:
        """Pause the countdown, keeping the remaining time."""
        async with self._lock:
            self._cancel_auto_start()
            if self._state.status != TimerStatus.RUNNING:
                return
            self._cancel_ticks()
            self._state.status = TimerStatus.PAUSED
            state = self._state.copy()

        logger.info(f"Timer paused at {state.display}")
        await self._emit(self.on_state_change, state)

    async def reset(self) -> None:
        """Reset the current mode to its full duration."""
        async with self._lock:
            self._cancel_auto_start()
            self._switch_locked(self._state.mode)
            state = self._state.copy()

        logger.info(f"Timer reset: {state.mode.value}")
        await self._emit(self.on_state_change, state)

    async def switch_mode(self, mode: TimerMode | str) -> None:
        """Switch to another mode. Never counts as a completed interval."""
        mode = TimerMode(mode)
        async with self._lock:
            self._cancel_auto_start()
            self._switch_locked(mode)
            state = self._state.copy()

        logger.info(f"Timer switched to {mode.value}")
        await self._emit(self.on_state_change, state)

    async def refresh_idle(self) -> bool:
        """Show the current config's full duration if the timer is idle.

        Unlike ``reset`` this leaves a pending auto-start alone, and does
        nothing while a countdown is running or paused.
        """
        async with self._lock:
            if self._state.status != TimerStatus.IDLE or self.auto_start_pending:
                return False
            self._switch_locked(self._state.mode)
            state = self._state.copy()

        await self._emit(self.on_state_change, state)
        return True

    async def reset_count(self) -> None:
        """Zero the completed pomodoro counter."""
        async with self._lock:
            self._state.completed_pomodoro_count = 0
            state = self._state.copy()

        await self._emit(self.on_state_change, state)

    async def tick(self) -> CompletionEvent | None:
        """Advance the countdown by one second.

        Returns the completion event if this tick finished the interval.
        """
        return await self._advance(generation=None)

    async def close(self) -> None:
        """Stop the ticker and any pending auto-start."""
        async with self._lock:
            tasks = [t for t in (self._tick_task, self._auto_start_task) if t]
            self._cancel_auto_start()
            self._cancel_ticks()

        for task in tasks:
            if task is asyncio.current_task():
                continue
            try:
                await task
            except asyncio.CancelledError:
                pass

    # ----- Internals (callers hold the lock) -----

    def _start_locked(self) -> bool:
        if self._state.status == TimerStatus.RUNNING:
            return False

        if self._state.status == TimerStatus.IDLE:
            self._interval_started_at = _now()

        self._state.status = TimerStatus.RUNNING
        self._arm_ticks()
        return True

    def _switch_locked(self, mode: TimerMode) -> None:
        self._cancel_ticks()
        self._state.mode = mode
        self._state.status = TimerStatus.IDLE
        self._state.seconds_remaining = resolve_duration(mode, self.config)
        self._interval_started_at = None

    def _tick_locked(self) -> tuple[CompletionEvent, CompletionDecision] | None:
        if self._state.seconds_remaining > 1:
            self._state.seconds_remaining -= 1
            return None

        completed_mode = self._state.mode
        self._cancel_ticks()
        self._state.seconds_remaining = 0
        self._state.status = TimerStatus.IDLE

        ended_at = _now()
        event = CompletionEvent(
            completed_mode=completed_mode,
            started_at=self._interval_started_at or ended_at,
            ended_at=ended_at,
            planned_duration_seconds=resolve_duration(completed_mode, self.config),
            associated_task_id=self.task_provider() if self.task_provider else None,
        )

        try:
            decision = self.policy.on_complete(event, self._state.copy(), self.config)
        except Exception as e:
            logger.error(f"Completion policy failed, using default transition: {e}")
            decision = CompletionPolicy.decide(
                completed_mode, self._state.completed_pomodoro_count, self.config
            )
        self._state.completed_pomodoro_count = decision.completed_pomodoro_count
        self._switch_locked(decision.next_mode)

        if decision.auto_start:
            self._schedule_auto_start()

        return event, decision

    def _arm_ticks(self) -> None:
        if self.tick_interval is None:
            return
        self._tick_task = asyncio.create_task(self._tick_loop(self._generation))

    def _cancel_ticks(self) -> None:
        self._generation += 1
        task = self._tick_task
        self._tick_task = None
        if task and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def _schedule_auto_start(self) -> None:
        delay = self.config.auto_start_delay_seconds
        if delay <= 0:
            self._start_locked()
            return
        self._auto_start_task = asyncio.create_task(self._delayed_start(delay))

    def _cancel_auto_start(self) -> None:
        task = self._auto_start_task
        self._auto_start_task = None
        if task and not task.done() and task is not asyncio.current_task():
            task.cancel()
            logger.debug("Pending auto-start cancelled")

    # ----- Background tasks -----

    async def _advance(self, generation: int | None) -> CompletionEvent | None:
        async with self._lock:
            if self._state.status != TimerStatus.RUNNING:
                return None
            if generation is not None and generation != self._generation:
                return None
            result = self._tick_locked()
            state = self._state.copy()

        await self._emit(self.on_tick, state)

        if result is None:
            return None

        event, decision = result
        await self._emit(self.on_complete, event, decision)
        await self._emit(self.on_state_change, state)
        return event

    async def _tick_loop(self, generation: int) -> None:
        """Main timer tick loop."""
        try:
            while generation == self._generation:
                await asyncio.sleep(self.tick_interval)
                if generation != self._generation:
                    break
                event = await self._advance(generation)
                if event is not None:
                    break
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error in timer tick loop: {e}")

    async def _delayed_start(self, delay: float) -> None:
        await asyncio.sleep(delay)
        async with self._lock:
            if self._auto_start_task is not asyncio.current_task():
                return
            self._auto_start_task = None
            changed = self._start_locked()
            state = self._state.copy()

        if changed:
            logger.info(f"Auto-started {state.mode.value}")
            await self._emit(self.on_state_change, state)

    @staticmethod
    async def _emit(callback: Callable[..., Any] | None, *args: Any) -> None:
        if callback is None:
            return
        try:
            result = callback(*args)
            if asyncio.iscoroutine(result):
                await result
        except Exception as e:
            logger.error(f"Error in timer callback: {e}")
