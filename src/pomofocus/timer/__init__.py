"""Pomodoro timer core: state machine, completion policy and controls."""

from pomofocus.timer.controls import ControlAdapter, TimerCommand
from pomofocus.timer.durations import resolve_duration
from pomofocus.timer.engine import TimerEngine
from pomofocus.timer.models import (
    CompletionDecision,
    CompletionEvent,
    TimerMode,
    TimerState,
    TimerStatus,
    format_remaining,
)
from pomofocus.timer.policy import CompletionPolicy
from pomofocus.timer.ports import NotificationPermission

__all__ = [
    "CompletionDecision",
    "CompletionEvent",
    "CompletionPolicy",
    "ControlAdapter",
    "NotificationPermission",
    "TimerCommand",
    "TimerEngine",
    "TimerMode",
    "TimerState",
    "TimerStatus",
    "format_remaining",
    "resolve_duration",
]
