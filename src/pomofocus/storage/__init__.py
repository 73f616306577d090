"""Storage layer for sessions, tasks and settings."""

from pomofocus.storage.database import Database, init_database
from pomofocus.storage.sessions import SessionStore, SettingsStore, Task, TaskStore

__all__ = ["Database", "init_database", "SessionStore", "SettingsStore", "Task", "TaskStore"]
