"""Command and key-binding dispatch."""

import pytest

from pomofocus.timer.controls import KEY_BINDINGS, ControlAdapter, TimerCommand
from pomofocus.timer.models import TimerMode, TimerStatus

from conftest import advance, make_engine


@pytest.fixture
def controls() -> ControlAdapter:
    return ControlAdapter(make_engine())


class TestDispatch:
    async def test_start_and_pause(self, controls):
        await controls.dispatch(TimerCommand.START)
        assert controls.engine.state.status == TimerStatus.RUNNING
        await controls.dispatch("pause")
        assert controls.engine.state.status == TimerStatus.PAUSED

    async def test_toggle(self, controls):
        await controls.dispatch(TimerCommand.TOGGLE)
        assert controls.engine.state.status == TimerStatus.RUNNING
        await controls.dispatch(TimerCommand.TOGGLE)
        assert controls.engine.state.status == TimerStatus.PAUSED
        await controls.dispatch(TimerCommand.TOGGLE)
        assert controls.engine.state.status == TimerStatus.RUNNING

    async def test_reset(self, controls):
        await controls.dispatch(TimerCommand.START)
        await advance(controls.engine, 10)
        await controls.dispatch(TimerCommand.RESET)
        assert controls.engine.state.seconds_remaining == 1500
        assert controls.engine.state.status == TimerStatus.IDLE

    async def test_switch_mode(self, controls):
        await controls.dispatch(TimerCommand.SWITCH_MODE, mode="longBreak")
        assert controls.engine.state.mode == TimerMode.LONG_BREAK
        assert controls.engine.state.seconds_remaining == 900

    async def test_switch_mode_requires_mode(self, controls):
        with pytest.raises(ValueError):
            await controls.dispatch(TimerCommand.SWITCH_MODE)

    async def test_unknown_command(self, controls):
        with pytest.raises(ValueError):
            await controls.dispatch("snooze")

    async def test_select_task_leaves_timer_alone(self, controls):
        await controls.dispatch(TimerCommand.START)
        await advance(controls.engine, 3)
        before = controls.engine.state

        await controls.dispatch(TimerCommand.SELECT_TASK, task_id="task-1")

        assert controls.current_task_id == "task-1"
        assert controls.engine.state == before

    async def test_clearing_task(self, controls):
        controls.select_task("task-1")
        controls.select_task("")
        assert controls.current_task_id is None


class TestKeys:
    @pytest.mark.parametrize(
        "key, mode",
        [("1", TimerMode.POMODORO), ("2", TimerMode.SHORT_BREAK), ("3", TimerMode.LONG_BREAK)],
    )
    async def test_number_keys_switch_mode(self, controls, key, mode):
        await controls.dispatch(TimerCommand.SWITCH_MODE, mode=TimerMode.LONG_BREAK)
        assert await controls.handle_key(key) is True
        assert controls.engine.state.mode == mode

    async def test_space_toggles(self, controls):
        assert await controls.handle_key(" ") is True
        assert controls.engine.state.status == TimerStatus.RUNNING
        assert await controls.handle_key("space") is True
        assert controls.engine.state.status == TimerStatus.PAUSED

    async def test_reset_key_is_case_insensitive(self, controls):
        await controls.dispatch(TimerCommand.START)
        await advance(controls.engine, 5)
        assert await controls.handle_key("R") is True
        assert controls.engine.state.seconds_remaining == 1500

    async def test_keys_ignored_while_typing(self, controls):
        for key in KEY_BINDINGS:
            assert await controls.handle_key(key, text_entry_focused=True) is False
        state = controls.engine.state
        assert state.status == TimerStatus.IDLE
        assert state.mode == TimerMode.POMODORO

    async def test_unbound_key(self, controls):
        assert await controls.handle_key("x") is False
        assert controls.engine.state.status == TimerStatus.IDLE
