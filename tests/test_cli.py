"""CLI command tests."""

import json

import pytest
from typer.testing import CliRunner

from pomofocus import __version__
from pomofocus.cli import main as cli_main
from pomofocus.cli.main import app, format_status_line

runner = CliRunner()


@pytest.fixture(autouse=True)
def use_test_config(monkeypatch, app_config):
    monkeypatch.setattr(cli_main, "get_config", lambda: app_config)
    return app_config


def test_version():
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert __version__ in result.output


class TestTimerCommand:
    def test_start_writes_control_file(self, app_config):
        result = runner.invoke(app, ["timer", "start"])
        assert result.exit_code == 0
        data = json.loads(app_config.control_file.read_text())
        assert data["action"] == "start"

    def test_mode_switch(self, app_config):
        runner.invoke(app, ["timer", "short"])
        data = json.loads(app_config.control_file.read_text())
        assert data["action"] == "switch_mode"
        assert data["mode"] == "shortBreak"

    def test_select_task(self, app_config):
        runner.invoke(app, ["timer", "select", "--task", "abc"])
        data = json.loads(app_config.control_file.read_text())
        assert data["action"] == "select_task"
        assert data["task_id"] == "abc"

    def test_unknown_action(self, app_config):
        result = runner.invoke(app, ["timer", "nap"])
        assert result.exit_code == 1
        assert not app_config.control_file.exists()


class TestStatus:
    def test_not_running(self):
        result = runner.invoke(app, ["status"])
        assert result.exit_code == 0
        assert "STOPPED" in result.output

    def test_running(self, app_config):
        app_config.ensure_directories()
        app_config.status_file.write_text(
            json.dumps(
                {
                    "mode": "shortBreak",
                    "status": "running",
                    "secondsRemaining": 125,
                    "completedPomodoroCount": 2,
                    "currentTaskId": None,
                    "pid": 4242,
                }
            )
        )
        result = runner.invoke(app, ["status"])
        assert result.exit_code == 0
        assert "Short Break" in result.output
        assert "02:05" in result.output
        assert "RUNNING" in result.output


def test_status_line():
    line = format_status_line(
        {"display": "12:34", "mode": "pomodoro", "status": "running", "completedPomodoroCount": 3}
    )
    assert "12:34" in line
    assert "Pomodoro" in line
    assert "#3" in line


class TestSettings:
    def test_show_defaults(self):
        result = runner.invoke(app, ["settings"])
        assert result.exit_code == 0
        assert "1 min" in result.output

    def test_update_persists(self):
        result = runner.invoke(app, ["settings", "--pomodoro", "30", "--auto-break"])
        assert result.exit_code == 0
        assert "Settings saved" in result.output

        result = runner.invoke(app, ["settings"])
        assert "30 min" in result.output

    def test_out_of_range(self):
        result = runner.invoke(app, ["settings", "--pomodoro", "0"])
        assert result.exit_code == 1
        assert "Invalid settings" in result.output


class TestTasksAndHistory:
    def test_add_and_list(self):
        result = runner.invoke(app, ["tasks", "--add", "Draft", "--estimate", "3"])
        assert result.exit_code == 0
        assert "Created task" in result.output

        result = runner.invoke(app, ["tasks"])
        assert result.exit_code == 0
        assert "Draft" in result.output
        assert "(0/3)" in result.output

    def test_no_tasks(self):
        result = runner.invoke(app, ["tasks"])
        assert "No tasks" in result.output

    def test_empty_history(self):
        result = runner.invoke(app, ["history"])
        assert result.exit_code == 0
        assert "No sessions" in result.output

    def test_bad_date(self):
        result = runner.invoke(app, ["history", "--date", "yesterday"])
        assert result.exit_code == 1


def test_config_show(app_config):
    result = runner.invoke(app, ["config-show"])
    assert result.exit_code == 0
    assert "Pomofocus Configuration" in result.output
