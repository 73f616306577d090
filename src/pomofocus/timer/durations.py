"""Map timer modes to configured durations."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pomofocus.timer.models import TimerMode

if TYPE_CHECKING:
    from pomofocus.core.config import TimerConfig


def resolve_duration(mode: TimerMode, config: TimerConfig) -> int:
    """Get the full duration in seconds for a mode."""
    if mode == TimerMode.POMODORO:
        return config.pomodoro_minutes * 60
    elif mode == TimerMode.SHORT_BREAK:
        return config.short_break_minutes * 60
    elif mode == TimerMode.LONG_BREAK:
        return config.long_break_minutes * 60
    raise ValueError(f"Unknown timer mode: {mode!r}")
