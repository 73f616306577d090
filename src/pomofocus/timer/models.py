"""Timer state, modes and the values exchanged on interval completion."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class TimerMode(str, Enum):
    """Interval type the timer is counting down."""

    POMODORO = "pomodoro"
    SHORT_BREAK = "shortBreak"
    LONG_BREAK = "longBreak"

    @property
    def is_break(self) -> bool:
        return self is not TimerMode.POMODORO


class TimerStatus(str, Enum):
    """Run state of the countdown."""

    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"


def format_remaining(seconds: int) -> str:
    """Format seconds as zero-padded MM:SS."""
    minutes, seconds = divmod(seconds, 60)
    return f"{minutes:02d}:{seconds:02d}"


@dataclass
class TimerState:
    """Read model of the timer engine."""

    mode: TimerMode = TimerMode.POMODORO
    status: TimerStatus = TimerStatus.IDLE
    seconds_remaining: int = 25 * 60
    completed_pomodoro_count: int = 0

    @property
    def display(self) -> str:
        return format_remaining(self.seconds_remaining)

    @property
    def is_running(self) -> bool:
        return self.status == TimerStatus.RUNNING

    def copy(self) -> TimerState:
        return TimerState(
            mode=self.mode,
            status=self.status,
            seconds_remaining=self.seconds_remaining,
            completed_pomodoro_count=self.completed_pomodoro_count,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode.value,
            "status": self.status.value,
            "secondsRemaining": self.seconds_remaining,
            "completedPomodoroCount": self.completed_pomodoro_count,
            "display": self.display,
        }


@dataclass(frozen=True)
class CompletionEvent:
    """A countdown that reached zero.

    Built once per zero-crossing and handed to the completion policy and the
    session recorder. The engine does not keep it.
    """

    completed_mode: TimerMode
    started_at: datetime
    ended_at: datetime
    planned_duration_seconds: int
    associated_task_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.completed_mode.value,
            "startedAt": self.started_at.isoformat(),
            "endedAt": self.ended_at.isoformat(),
            "plannedDurationSeconds": self.planned_duration_seconds,
            "taskId": self.associated_task_id,
        }


@dataclass(frozen=True)
class CompletionDecision:
    """What happens after a completed interval."""

    next_mode: TimerMode
    auto_start: bool
    completed_pomodoro_count: int
    message: str
