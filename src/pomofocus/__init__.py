"""Pomodoro timer with task tracking, session history and a web API."""

__version__ = "0.1.0"
