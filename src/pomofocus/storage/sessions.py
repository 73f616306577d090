"""Session history, task progress and persisted timer settings."""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any

from pydantic import ValidationError

from pomofocus.core.config import TimerConfig
from pomofocus.storage.database import Database
from pomofocus.timer.models import CompletionEvent, TimerMode

logger = logging.getLogger(__name__)

SETTINGS_KEY = "timer_settings"


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Task:
    """A unit of work pomodoros are credited to."""

    id: str
    title: str
    estimated_pomodoros: int = 1
    completed_pomodoros: int = 0
    completed: bool = False
    notes: str | None = None
    project: str | None = None
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Task:
        return cls(
            id=row["id"],
            title=row["title"],
            estimated_pomodoros=row["estimated_pomodoros"],
            completed_pomodoros=row["completed_pomodoros"],
            completed=bool(row["completed"]),
            notes=row.get("notes"),
            project=row.get("project"),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "estimatedPomodoros": self.estimated_pomodoros,
            "completedPomodoros": self.completed_pomodoros,
            "completed": self.completed,
            "notes": self.notes,
            "project": self.project,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


class TaskStore:
    """Minimal task persistence: enough to select tasks and track progress."""

    def __init__(self, db: Database):
        self.db = db

    async def create(
        self,
        title: str,
        estimated_pomodoros: int = 1,
        notes: str | None = None,
        project: str | None = None,
    ) -> Task:
        now = _utcnow_iso()
        task = Task(
            id=str(uuid.uuid4()),
            title=title,
            estimated_pomodoros=estimated_pomodoros,
            notes=notes,
            project=project,
            created_at=now,
            updated_at=now,
        )
        await self.db.insert(
            "tasks",
            {
                "id": task.id,
                "title": task.title,
                "notes": task.notes,
                "project": task.project,
                "estimated_pomodoros": task.estimated_pomodoros,
                "completed_pomodoros": 0,
                "completed": False,
                "created_at": now,
                "updated_at": now,
            },
        )
        logger.info(f"Created task {task.id}: {title}")
        return task

    async def get(self, task_id: str) -> Task | None:
        row = await self.db.fetch_one("SELECT * FROM tasks WHERE id = ?", (task_id,))
        return Task.from_row(row) if row else None

    async def list_tasks(self, include_completed: bool = True) -> list[Task]:
        query = "SELECT * FROM tasks"
        if not include_completed:
            query += " WHERE completed = 0"
        query += " ORDER BY created_at"
        rows = await self.db.fetch_all(query)
        return [Task.from_row(row) for row in rows]


class SessionStore:
    """Records completed intervals and serves session history.

    Implements the timer's ``SessionRecorder`` port.
    """

    def __init__(self, db: Database):
        self.db = db

    async def record_completed_interval(
        self, event: CompletionEvent, task_id: str | None
    ) -> bool:
        """Store a finished interval and credit its task.

        Only a completed pomodoro with a task bumps that task's counter.
        Returns False if the write failed.
        """
        session_id = str(uuid.uuid4())
        try:
            async with self.db.transaction() as conn:
                await conn.execute(
                    """INSERT INTO sessions (id, task_id, mode, started_at, ended_at, seconds, completed)
                       VALUES (?, ?, ?, ?, ?, ?, ?)""",
                    (
                        session_id,
                        task_id,
                        event.completed_mode.value,
                        event.started_at.isoformat(),
                        event.ended_at.isoformat(),
                        event.planned_duration_seconds,
                        True,
                    ),
                )
                if event.completed_mode == TimerMode.POMODORO and task_id:
                    await conn.execute(
                        """UPDATE tasks SET completed_pomodoros = completed_pomodoros + 1,
                           updated_at = ? WHERE id = ?""",
                        (_utcnow_iso(), task_id),
                    )
        except (sqlite3.Error, RuntimeError) as e:
            logger.error(f"Failed to record session {session_id}: {e}")
            return False

        logger.debug(f"Recorded {event.completed_mode.value} session {session_id}")
        return True

    async def list_sessions(
        self,
        mode: TimerMode | None = None,
        date_from: datetime | date | None = None,
        date_to: datetime | date | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[dict[str, Any]], int]:
        """Get sessions newest first, with the total matching count."""
        clauses: list[str] = []
        params: list[Any] = []

        if mode is not None:
            clauses.append("s.mode = ?")
            params.append(TimerMode(mode).value)
        if date_from is not None:
            clauses.append("date(s.started_at) >= date(?)")
            params.append(date_from.isoformat())
        if date_to is not None:
            clauses.append("date(s.started_at) <= date(?)")
            params.append(date_to.isoformat())

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        total_row = await self.db.fetch_one(
            f"SELECT COUNT(*) AS count FROM sessions s {where}", tuple(params)
        )
        total = total_row["count"] if total_row else 0

        rows = await self.db.fetch_all(
            f"""
            SELECT s.id, s.task_id, s.mode, s.started_at, s.ended_at, s.seconds,
                   s.completed, t.title AS task_title
            FROM sessions s
            LEFT JOIN tasks t ON t.id = s.task_id
            {where}
            ORDER BY s.started_at DESC
            LIMIT ? OFFSET ?
            """,
            (*params, limit, (page - 1) * limit),
        )
        for row in rows:
            row["completed"] = bool(row["completed"])
        return rows, total

    async def stats(self, day: date) -> dict[str, Any]:
        """Get pomodoro count and focus time for one day."""
        row = await self.db.fetch_one(
            """
            SELECT COUNT(*) AS pomodoros, COALESCE(SUM(seconds), 0) AS focus_seconds
            FROM sessions
            WHERE mode = ? AND date(started_at) = date(?)
            """,
            (TimerMode.POMODORO.value, day.isoformat()),
        )
        pomodoros = row["pomodoros"] if row else 0
        focus_seconds = row["focus_seconds"] if row else 0
        return {
            "date": day.isoformat(),
            "pomodoros": pomodoros,
            "focus_minutes": round(focus_seconds / 60, 1),
        }


class SettingsStore:
    """Timer settings persisted in the config table."""

    def __init__(self, db: Database):
        self.db = db

    async def load(self, defaults: TimerConfig) -> TimerConfig:
        """Get stored settings, falling back to defaults if missing or invalid."""
        raw = await self.db.get_config(SETTINGS_KEY)
        if raw is None:
            return defaults

        try:
            return TimerConfig.model_validate(
                {**defaults.model_dump(), **json.loads(raw)}
            )
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Ignoring stored timer settings: {e}")
            return defaults

    async def save(self, config: TimerConfig) -> None:
        await self.db.set_config(SETTINGS_KEY, json.dumps(config.model_dump()))
        logger.info("Timer settings saved")
