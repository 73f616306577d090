"""Interfaces the timer core calls out to.

The host supplies concrete implementations (desktop notifications, sound,
database-backed session recording). The null implementations here keep the
timer usable headless and in tests.
"""

from __future__ import annotations

from enum import Enum
from typing import Protocol, runtime_checkable

from pomofocus.timer.models import CompletionEvent


class NotificationPermission(str, Enum):
    """Whether the host may show system notifications."""

    GRANTED = "granted"
    DENIED = "denied"
    UNDETERMINED = "undetermined"


@runtime_checkable
class SessionRecorder(Protocol):
    """Persists completed intervals."""

    async def record_completed_interval(
        self, event: CompletionEvent, task_id: str | None
    ) -> bool:
        ...


@runtime_checkable
class Notifier(Protocol):
    """Shows system notifications."""

    @property
    def permission(self) -> NotificationPermission:
        ...

    async def request_permission(self) -> NotificationPermission:
        ...

    async def notify(self, title: str, body: str) -> None:
        ...


@runtime_checkable
class AudioPlayer(Protocol):
    """Plays the completion sound."""

    async def play(self, volume: int) -> None:
        ...


class NullRecorder:
    """Recorder that drops every event."""

    async def record_completed_interval(
        self, event: CompletionEvent, task_id: str | None
    ) -> bool:
        return True


class NullNotifier:
    """Notifier without permission to show anything."""

    @property
    def permission(self) -> NotificationPermission:
        return NotificationPermission.DENIED

    async def request_permission(self) -> NotificationPermission:
        return NotificationPermission.DENIED

    async def notify(self, title: str, body: str) -> None:
        return None


class NullAudio:
    async def play(self, volume: int) -> None:
        return None
