"""Shared fixtures and test doubles."""

from __future__ import annotations

from pathlib import Path

import pytest
import pytest_asyncio

from pomofocus.core.config import Config, TimerConfig
from pomofocus.storage.database import Database
from pomofocus.timer.engine import TimerEngine
from pomofocus.timer.models import CompletionEvent
from pomofocus.timer.policy import CompletionPolicy
from pomofocus.timer.ports import NotificationPermission


class RecordingRecorder:
    """Session recorder that remembers what it was given."""

    def __init__(self, result: bool = True, error: Exception | None = None):
        self.result = result
        self.error = error
        self.calls: list[tuple[CompletionEvent, str | None]] = []

    async def record_completed_interval(
        self, event: CompletionEvent, task_id: str | None
    ) -> bool:
        self.calls.append((event, task_id))
        if self.error:
            raise self.error
        return self.result


class FakeNotifier:
    def __init__(
        self,
        permission: NotificationPermission = NotificationPermission.GRANTED,
        grant_on_request: bool = True,
        error: Exception | None = None,
    ):
        self._permission = permission
        self.grant_on_request = grant_on_request
        self.error = error
        self.requests = 0
        self.sent: list[tuple[str, str]] = []

    @property
    def permission(self) -> NotificationPermission:
        return self._permission

    async def request_permission(self) -> NotificationPermission:
        self.requests += 1
        self._permission = (
            NotificationPermission.GRANTED
            if self.grant_on_request
            else NotificationPermission.DENIED
        )
        return self._permission

    async def notify(self, title: str, body: str) -> None:
        if self.error:
            raise self.error
        self.sent.append((title, body))


class FakeAudio:
    def __init__(self, error: Exception | None = None):
        self.error = error
        self.volumes: list[int] = []

    async def play(self, volume: int) -> None:
        self.volumes.append(volume)
        if self.error:
            raise self.error


class BrokenPermissionNotifier(FakeNotifier):
    """Notifier whose permission lookup itself fails."""

    @property
    def permission(self) -> NotificationPermission:
        raise RuntimeError("notification center unavailable")


class SyncFailingAudio:
    """Audio port that fails before returning an awaitable."""

    def play(self, volume: int):
        raise OSError("no audio device")


def make_timer_config(**overrides) -> TimerConfig:
    values = {
        "pomodoro_minutes": 25,
        "short_break_minutes": 5,
        "long_break_minutes": 15,
        "long_break_interval": 4,
        "auto_start_break": False,
        "auto_start_pomodoro": False,
        "sound_enabled": False,
        "notifications_enabled": False,
        "auto_start_delay_seconds": 0,
    }
    values.update(overrides)
    return TimerConfig(**values)


def make_engine(
    config: TimerConfig | None = None,
    recorder: RecordingRecorder | None = None,
    notifier: FakeNotifier | None = None,
    audio: FakeAudio | None = None,
) -> TimerEngine:
    """Headless engine: ticks are driven by the test."""
    policy = CompletionPolicy(recorder=recorder, notifier=notifier, audio=audio)
    return TimerEngine(config or make_timer_config(), policy, tick_interval=None)


async def advance(engine: TimerEngine, seconds: int) -> list[CompletionEvent]:
    """Tick the engine `seconds` times, collecting completion events."""
    events = []
    for _ in range(seconds):
        event = await engine.tick()
        if event is not None:
            events.append(event)
    return events


async def run_to_completion(engine: TimerEngine) -> CompletionEvent:
    """Start the current interval and tick until it completes."""
    await engine.start()
    remaining = engine.state.seconds_remaining
    events = await advance(engine, remaining)
    assert len(events) == 1
    return events[0]


@pytest.fixture
def recorder() -> RecordingRecorder:
    return RecordingRecorder()


@pytest.fixture
def app_config(tmp_path: Path) -> Config:
    return Config(
        data_dir=tmp_path / "data",
        log_dir=tmp_path / "logs",
        config_dir=tmp_path / "config",
        timer=make_timer_config(pomodoro_minutes=1, short_break_minutes=1, long_break_minutes=2),
    )


@pytest_asyncio.fixture
async def db(tmp_path: Path):
    database = Database(tmp_path / "test.db")
    await database.connect()
    yield database
    await database.close()
