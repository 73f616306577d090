"""Completion policy: next-mode decision and isolated side effects."""

import logging
from datetime import datetime, timedelta, timezone

import pytest

from pomofocus.timer.models import CompletionEvent, TimerMode, TimerState, TimerStatus
from pomofocus.timer.policy import NOTIFICATION_TITLE, CompletionPolicy
from pomofocus.timer.ports import NotificationPermission

from conftest import (
    BrokenPermissionNotifier,
    FakeAudio,
    FakeNotifier,
    RecordingRecorder,
    SyncFailingAudio,
    make_timer_config,
)


def _event(mode: TimerMode = TimerMode.POMODORO, task_id: str | None = None) -> CompletionEvent:
    ended = datetime(2026, 10, 18, 9, 25, tzinfo=timezone.utc)
    return CompletionEvent(
        completed_mode=mode,
        started_at=ended - timedelta(minutes=25),
        ended_at=ended,
        planned_duration_seconds=1500,
        associated_task_id=task_id,
    )


def _state(count: int = 0) -> TimerState:
    return TimerState(
        mode=TimerMode.POMODORO,
        status=TimerStatus.IDLE,
        seconds_remaining=0,
        completed_pomodoro_count=count,
    )


class TestDecide:
    @pytest.mark.parametrize(
        "count_before, expected",
        [
            (0, TimerMode.SHORT_BREAK),
            (1, TimerMode.SHORT_BREAK),
            (2, TimerMode.SHORT_BREAK),
            (3, TimerMode.LONG_BREAK),
            (4, TimerMode.SHORT_BREAK),
            (7, TimerMode.LONG_BREAK),
        ],
    )
    def test_long_break_uses_incremented_count(self, count_before, expected):
        decision = CompletionPolicy.decide(TimerMode.POMODORO, count_before, make_timer_config())
        assert decision.next_mode == expected
        assert decision.completed_pomodoro_count == count_before + 1

    def test_custom_interval(self):
        config = make_timer_config(long_break_interval=2)
        assert CompletionPolicy.decide(TimerMode.POMODORO, 1, config).next_mode == TimerMode.LONG_BREAK
        assert CompletionPolicy.decide(TimerMode.POMODORO, 2, config).next_mode == TimerMode.SHORT_BREAK

    @pytest.mark.parametrize("mode", [TimerMode.SHORT_BREAK, TimerMode.LONG_BREAK])
    def test_break_returns_to_pomodoro_without_counting(self, mode):
        decision = CompletionPolicy.decide(mode, 3, make_timer_config(auto_start_pomodoro=True))
        assert decision.next_mode == TimerMode.POMODORO
        assert decision.completed_pomodoro_count == 3
        assert decision.auto_start is True
        assert decision.message == "Break complete! Ready for another Pomodoro?"

    def test_auto_start_flags_follow_completed_mode(self):
        config = make_timer_config(auto_start_break=True, auto_start_pomodoro=False)
        assert CompletionPolicy.decide(TimerMode.POMODORO, 0, config).auto_start is True
        assert CompletionPolicy.decide(TimerMode.SHORT_BREAK, 1, config).auto_start is False

    def test_messages(self):
        config = make_timer_config()
        short = CompletionPolicy.decide(TimerMode.POMODORO, 0, config)
        long = CompletionPolicy.decide(TimerMode.POMODORO, 3, config)
        assert short.message == "Pomodoro complete! Time for a short break."
        assert long.message == "Pomodoro complete! Time for a long break."


class TestSideEffects:
    async def test_all_effects_fire_when_enabled(self):
        recorder, notifier, audio = RecordingRecorder(), FakeNotifier(), FakeAudio()
        policy = CompletionPolicy(recorder=recorder, notifier=notifier, audio=audio)
        config = make_timer_config(sound_enabled=True, notifications_enabled=True, volume=70)

        event = _event(task_id="task-9")
        policy.on_complete(event, _state(), config)
        await policy.drain()

        assert audio.volumes == [70]
        assert notifier.sent == [
            (NOTIFICATION_TITLE, "Pomodoro complete! Time for a short break.")
        ]
        assert recorder.calls == [(event, "task-9")]
        assert policy.pending_count == 0

    async def test_disabled_effects_do_not_fire(self):
        recorder, notifier, audio = RecordingRecorder(), FakeNotifier(), FakeAudio()
        policy = CompletionPolicy(recorder=recorder, notifier=notifier, audio=audio)

        policy.on_complete(_event(), _state(), make_timer_config())
        await policy.drain()

        assert audio.volumes == []
        assert notifier.sent == []
        assert len(recorder.calls) == 1

    async def test_denied_permission_skips_notification(self):
        notifier = FakeNotifier(permission=NotificationPermission.DENIED)
        policy = CompletionPolicy(notifier=notifier)

        policy.on_complete(_event(), _state(), make_timer_config(notifications_enabled=True))
        await policy.drain()

        assert notifier.requests == 0
        assert notifier.sent == []

    async def test_undetermined_permission_is_requested_first(self):
        notifier = FakeNotifier(permission=NotificationPermission.UNDETERMINED)
        policy = CompletionPolicy(notifier=notifier)

        policy.on_complete(_event(), _state(), make_timer_config(notifications_enabled=True))
        await policy.drain()

        assert notifier.requests == 1
        assert len(notifier.sent) == 1

    async def test_refused_permission_request_sends_nothing(self):
        notifier = FakeNotifier(
            permission=NotificationPermission.UNDETERMINED, grant_on_request=False
        )
        policy = CompletionPolicy(notifier=notifier)

        policy.on_complete(_event(), _state(), make_timer_config(notifications_enabled=True))
        await policy.drain()

        assert notifier.requests == 1
        assert notifier.sent == []
        assert notifier.permission == NotificationPermission.DENIED

    async def test_failures_are_isolated(self):
        recorder = RecordingRecorder()
        notifier = FakeNotifier(error=RuntimeError("no display"))
        audio = FakeAudio(error=OSError("no audio device"))
        policy = CompletionPolicy(recorder=recorder, notifier=notifier, audio=audio)
        config = make_timer_config(sound_enabled=True, notifications_enabled=True)

        decision = policy.on_complete(_event(), _state(), config)
        await policy.drain()

        assert decision.next_mode == TimerMode.SHORT_BREAK
        assert audio.volumes == [config.volume]
        assert len(recorder.calls) == 1

    async def test_permission_lookup_failure_is_isolated(self):
        recorder, audio = RecordingRecorder(), FakeAudio()
        policy = CompletionPolicy(
            recorder=recorder, notifier=BrokenPermissionNotifier(), audio=audio
        )
        config = make_timer_config(sound_enabled=True, notifications_enabled=True)

        decision = policy.on_complete(_event(), _state(), config)
        await policy.drain()

        assert decision.next_mode == TimerMode.SHORT_BREAK
        assert audio.volumes == [config.volume]
        assert len(recorder.calls) == 1

    async def test_audio_failing_synchronously_is_isolated(self):
        recorder, notifier = RecordingRecorder(), FakeNotifier()
        policy = CompletionPolicy(recorder=recorder, notifier=notifier, audio=SyncFailingAudio())
        config = make_timer_config(sound_enabled=True, notifications_enabled=True)

        decision = policy.on_complete(_event(), _state(), config)
        await policy.drain()

        assert decision.completed_pomodoro_count == 1
        assert len(notifier.sent) == 1
        assert len(recorder.calls) == 1

    async def test_recorder_error_is_logged(self, caplog):
        policy = CompletionPolicy(recorder=RecordingRecorder(error=RuntimeError("disk full")))

        with caplog.at_level(logging.ERROR, logger="pomofocus.timer.policy"):
            policy.on_complete(_event(), _state(), make_timer_config())
            await policy.drain()

        assert "disk full" in caplog.text

    async def test_rejected_record_is_logged(self, caplog):
        policy = CompletionPolicy(recorder=RecordingRecorder(result=False))

        with caplog.at_level(logging.WARNING, logger="pomofocus.timer.policy"):
            policy.on_complete(_event(), _state(), make_timer_config())
            await policy.drain()

        assert "rejected" in caplog.text

    async def test_on_complete_does_not_wait_for_effects(self):
        policy = CompletionPolicy(recorder=RecordingRecorder(), audio=FakeAudio())

        policy.on_complete(_event(), _state(), make_timer_config(sound_enabled=True))

        assert policy.pending_count == 2
        await policy.drain()
        assert policy.pending_count == 0
