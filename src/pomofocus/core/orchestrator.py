"""Host orchestrator wiring the timer core to storage, notifications and events."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import signal
from datetime import date, datetime
from typing import Any

from pomofocus.core.config import Config, TimerConfig, get_config
from pomofocus.core.events import EventHub, EventType
from pomofocus.notify.desktop import DesktopNotifier, SoundPlayer
from pomofocus.storage.database import Database, init_database
from pomofocus.storage.sessions import SessionStore, SettingsStore, TaskStore
from pomofocus.timer.controls import ControlAdapter, TimerCommand
from pomofocus.timer.engine import TimerEngine
from pomofocus.timer.models import (
    CompletionDecision,
    CompletionEvent,
    TimerMode,
    TimerState,
)
from pomofocus.timer.policy import CompletionPolicy
from pomofocus.timer.ports import AudioPlayer, Notifier

logger = logging.getLogger(__name__)


class TaskNotFoundError(LookupError):
    """Selected task does not exist."""


class Orchestrator:
    """Main coordinator for Pomofocus.

    Owns the single timer engine of this process together with the
    configuration, the current task selection and everything the timer talks
    to: the session store, desktop notifications, sound and the event hub.
    """

    def __init__(
        self,
        config: Config | None = None,
        *,
        notifier: Notifier | None = None,
        audio: AudioPlayer | None = None,
        tick_interval: float | None = 1.0,
    ):
        self.config = config or get_config()
        self.tick_interval = tick_interval
        self._running = False
        self._startup_time: datetime | None = None

        self.hub = EventHub()
        self.notifier: Notifier = notifier or DesktopNotifier()
        self.audio: AudioPlayer = audio or SoundPlayer(self.config.sound.sound_file)

        # Initialized in start()
        self.db: Database | None = None
        self.sessions: SessionStore | None = None
        self.tasks: TaskStore | None = None
        self.settings: SettingsStore | None = None
        self.policy: CompletionPolicy | None = None
        self.engine: TimerEngine | None = None
        self.controls: ControlAdapter | None = None

    @property
    def is_running(self) -> bool:
        """Check if orchestrator is running."""
        return self._running

    @property
    def uptime_seconds(self) -> float:
        """Get uptime in seconds."""
        if self._startup_time is None:
            return 0.0
        return (datetime.now() - self._startup_time).total_seconds()

    async def start(self) -> None:
        """Connect storage and build the timer."""
        if self._running:
            logger.warning("Orchestrator already running")
            return

        logger.info("Starting Pomofocus...")

        try:
            self.config.ensure_directories()

            self.db = await init_database(self.config.db_path)
            self.sessions = SessionStore(self.db)
            self.tasks = TaskStore(self.db)
            self.settings = SettingsStore(self.db)

            timer_config = await self.settings.load(self.config.timer)

            self.policy = CompletionPolicy(
                recorder=self.sessions,
                notifier=self.notifier,
                audio=self.audio,
            )
            self.engine = TimerEngine(
                timer_config,
                self.policy,
                tick_interval=self.tick_interval,
            )
            self.controls = ControlAdapter(self.engine)

            self.engine.on_tick = self._on_timer_tick
            self.engine.on_state_change = self._on_state_change
            self.engine.on_complete = self._on_complete

            self._running = True
            self._startup_time = datetime.now()

            logger.info("Pomofocus started")

        except Exception as e:
            logger.error(f"Failed to start: {e}")
            await self.stop()
            raise

    async def stop(self) -> None:
        """Stop the timer and release resources."""
        if not self._running and self.db is None:
            return

        logger.info("Stopping Pomofocus...")
        self._running = False

        if self.engine:
            await self.engine.close()

        # Let in-flight session writes land before the database goes away
        if self.policy:
            await self.policy.drain()

        if self.db:
            await self.db.close()
            self.db = None

        logger.info("Pomofocus stopped")

    # ----- Timer operations -----

    def _require_engine(self) -> tuple[TimerEngine, ControlAdapter]:
        if self.engine is None or self.controls is None:
            raise RuntimeError("Orchestrator not started")
        return self.engine, self.controls

    @property
    def state(self) -> TimerState:
        engine, _ = self._require_engine()
        return engine.state

    def timer_snapshot(self) -> dict[str, Any]:
        """Get the timer read model plus the selected task."""
        engine, controls = self._require_engine()
        snapshot = engine.snapshot()
        snapshot["currentTaskId"] = controls.current_task_id
        snapshot["autoStartPending"] = engine.auto_start_pending
        return snapshot

    async def dispatch(
        self,
        command: TimerCommand | str,
        *,
        mode: TimerMode | str | None = None,
        task_id: str | None = None,
    ) -> dict[str, Any]:
        """Apply a control command and return the new snapshot."""
        _, controls = self._require_engine()
        command = TimerCommand(command)

        if command == TimerCommand.SELECT_TASK:
            await self.select_task(task_id)
        else:
            await controls.dispatch(command, mode=mode)

        return self.timer_snapshot()

    async def select_task(self, task_id: str | None) -> None:
        """Credit future pomodoros to a task, or to none."""
        _, controls = self._require_engine()

        if task_id:
            task = await self.tasks.get(task_id) if self.tasks else None
            if task is None:
                raise TaskNotFoundError(f"Task not found: {task_id}")

        controls.select_task(task_id)
        self.hub.publish(EventType.TASK_SELECTED, {"taskId": controls.current_task_id})

    async def update_settings(self, timer_config: TimerConfig) -> TimerConfig:
        """Persist new timer settings and hand them to the engine.

        An idle timer shows the new duration right away; a running or paused
        countdown keeps its remaining time, and a pending auto-start still fires.
        """
        engine, _ = self._require_engine()

        if self.settings:
            await self.settings.save(timer_config)
        engine.update_config(timer_config)
        await engine.refresh_idle()

        self.hub.publish(EventType.SETTINGS_UPDATED, {"settings": timer_config.to_api()})
        return timer_config

    # ----- Engine callbacks -----

    def _on_timer_tick(self, state: TimerState) -> None:
        self.hub.publish(EventType.TIMER_SYNC, state.to_dict())

    def _on_state_change(self, state: TimerState) -> None:
        self.hub.publish(EventType.TIMER_SYNC, state.to_dict())

    def _on_complete(self, event: CompletionEvent, decision: CompletionDecision) -> None:
        logger.info(
            f"Completed {event.completed_mode.value} "
            f"(pomodoros: {decision.completed_pomodoro_count})"
        )
        self.hub.publish(
            EventType.SESSION_END,
            {
                **event.to_dict(),
                "nextMode": decision.next_mode.value,
                "autoStart": decision.auto_start,
                "completedPomodoros": decision.completed_pomodoro_count,
            },
        )

    # ----- Control file (used by `pomofocus timer`) -----

    async def apply_control(self, data: dict[str, Any]) -> None:
        """Apply a command written by another process."""
        action = data.get("action")
        try:
            await self.dispatch(action, mode=data.get("mode"), task_id=data.get("task_id"))
        except (ValueError, TaskNotFoundError) as e:
            logger.warning(f"Ignoring control command {action!r}: {e}")

    async def poll_control_file(self) -> bool:
        """Read, clear and apply a pending control command."""
        control_file = self.config.control_file
        if not control_file.exists():
            return False

        try:
            data = json.loads(control_file.read_text())
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Unreadable control file: {e}")
            return False
        finally:
            control_file.unlink(missing_ok=True)

        await self.apply_control(data)
        return True

    def write_status_file(self) -> None:
        """Write the timer snapshot for `pomofocus status`."""
        status = {
            **self.timer_snapshot(),
            "pid": os.getpid(),
            "updated_at": datetime.now().isoformat(),
        }
        self.config.status_file.write_text(json.dumps(status))

    def _setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._handle_signal, sig)

    def _handle_signal(self, sig: signal.Signals) -> None:
        """Handle shutdown signals."""
        logger.info(f"Received signal {sig.name}, initiating shutdown...")
        self._running = False

    async def get_health(self) -> dict[str, Any]:
        """Get health status of all components."""
        health: dict[str, Any] = {
            "status": "running" if self._running else "stopped",
            "uptime_seconds": self.uptime_seconds,
            "pid": os.getpid(),
        }

        if self.db:
            try:
                count = await self.db.fetch_one("SELECT COUNT(*) AS count FROM sessions")
                health["database"] = {
                    "connected": True,
                    "size_mb": await self.db.get_size_mb(),
                    "total_sessions": count["count"] if count else 0,
                }
            except Exception as e:
                health["database"] = {"connected": False, "error": str(e)}

        if self.engine:
            health["timer"] = self.timer_snapshot()

        if self.sessions:
            health["today"] = await self.sessions.stats(date.today())

        health["notifications"] = self.notifier.permission.value
        health["subscribers"] = self.hub.subscriber_count
        return health


# Global orchestrator instance
_orchestrator: Orchestrator | None = None


def get_orchestrator() -> Orchestrator:
    """Get the global orchestrator instance."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = Orchestrator()
    return _orchestrator


async def run_timer(
    orchestrator: Orchestrator | None = None,
    on_update: Any = None,
    poll_interval: float = 0.25,
) -> None:
    """Run the timer in the foreground until interrupted.

    Commands come in through the control file; ``on_update`` is called with
    the snapshot after every poll.
    """
    orchestrator = orchestrator or get_orchestrator()

    try:
        await orchestrator.start()
        orchestrator._setup_signal_handlers()

        while orchestrator.is_running:
            await orchestrator.poll_control_file()
            orchestrator.write_status_file()
            if on_update:
                on_update(orchestrator.timer_snapshot())
            await asyncio.sleep(poll_interval)

    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
    finally:
        orchestrator.config.status_file.unlink(missing_ok=True)
        await orchestrator.stop()
