"""API routes for the timer, settings, tasks and session history."""

from __future__ import annotations

import asyncio
import json
import logging
import math
from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from pomofocus.core.config import TimerConfig
from pomofocus.core.events import EventType, TimerEvent
from pomofocus.core.orchestrator import Orchestrator, TaskNotFoundError
from pomofocus.timer.controls import TimerCommand
from pomofocus.timer.models import TimerMode
from pomofocus.web.app import get_app_orchestrator, get_ws_orchestrator

logger = logging.getLogger(__name__)

router = APIRouter(tags=["api"])


class CommandRequest(BaseModel):
    """Timer control command."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    command: TimerCommand
    mode: TimerMode | None = None
    task_id: str | None = None


class TaskCreate(BaseModel):
    """New task."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: str = Field(min_length=1, max_length=200)
    estimated_pomodoros: int = Field(default=1, ge=1, le=100)
    notes: str | None = None
    project: str | None = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    database_connected: bool
    database_size_mb: float
    total_sessions: int


@router.get("/health", response_model=HealthResponse)
async def health_check(orch: Orchestrator = Depends(get_app_orchestrator)) -> HealthResponse:
    """API health check."""
    health = await orch.get_health()
    database = health.get("database", {})
    return HealthResponse(
        status="healthy" if database.get("connected") else "unhealthy",
        database_connected=bool(database.get("connected")),
        database_size_mb=database.get("size_mb", 0.0),
        total_sessions=database.get("total_sessions", 0),
    )


@router.get("/timer")
async def get_timer(orch: Orchestrator = Depends(get_app_orchestrator)) -> dict[str, Any]:
    """Get the current timer state."""
    return orch.timer_snapshot()


@router.post("/timer/commands")
async def post_command(
    request: CommandRequest,
    orch: Orchestrator = Depends(get_app_orchestrator),
) -> dict[str, Any]:
    """Apply a timer command."""
    if request.command == TimerCommand.SWITCH_MODE and request.mode is None:
        raise HTTPException(status_code=400, detail="switch_mode requires a mode")

    try:
        return await orch.dispatch(request.command, mode=request.mode, task_id=request.task_id)
    except TaskNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/settings")
async def get_settings(orch: Orchestrator = Depends(get_app_orchestrator)) -> dict[str, Any]:
    """Get timer settings."""
    return orch.engine.config.to_api()


@router.put("/settings")
async def put_settings(
    settings: TimerConfig,
    orch: Orchestrator = Depends(get_app_orchestrator),
) -> dict[str, Any]:
    """Replace timer settings. Applies from the next reset or mode switch."""
    updated = await orch.update_settings(settings)
    return updated.to_api()


@router.get("/sessions")
async def get_sessions(
    mode: TimerMode | None = Query(None),
    date_from: date | None = Query(None, description="Date in YYYY-MM-DD format"),
    date_to: date | None = Query(None, description="Date in YYYY-MM-DD format"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    orch: Orchestrator = Depends(get_app_orchestrator),
) -> dict[str, Any]:
    """Get session history, newest first."""
    sessions, total = await orch.sessions.list_sessions(
        mode=mode, date_from=date_from, date_to=date_to, page=page, limit=limit
    )
    return {
        "sessions": sessions,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit),
        },
    }


@router.get("/stats/{day}")
async def get_stats(day: date, orch: Orchestrator = Depends(get_app_orchestrator)) -> dict[str, Any]:
    """Get pomodoro statistics for a specific date."""
    return await orch.sessions.stats(day)


@router.get("/tasks")
async def list_tasks(
    include_completed: bool = Query(True),
    orch: Orchestrator = Depends(get_app_orchestrator),
) -> list[dict[str, Any]]:
    """List tasks."""
    tasks = await orch.tasks.list_tasks(include_completed=include_completed)
    return [task.to_dict() for task in tasks]


@router.post("/tasks", status_code=201)
async def create_task(
    request: TaskCreate,
    orch: Orchestrator = Depends(get_app_orchestrator),
) -> dict[str, Any]:
    """Create a task."""
    task = await orch.tasks.create(
        title=request.title,
        estimated_pomodoros=request.estimated_pomodoros,
        notes=request.notes,
        project=request.project,
    )
    return task.to_dict()


@router.websocket("/ws")
async def timer_socket(
    websocket: WebSocket,
    orch: Orchestrator = Depends(get_ws_orchestrator),
) -> None:
    """Stream timer events and accept commands.

    Incoming messages look like ``{"command": "start"}`` or
    ``{"command": "switch_mode", "mode": "shortBreak"}``.
    """
    await websocket.accept()
    queue = orch.hub.subscribe()

    await websocket.send_json(
        TimerEvent(EventType.CONNECTION_ESTABLISHED, orch.timer_snapshot()).to_dict()
    )

    async def forward_events() -> None:
        while True:
            event = await queue.get()
            await websocket.send_json(event.to_dict())

    sender = asyncio.create_task(forward_events())
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                request = CommandRequest.model_validate(json.loads(raw))
                await orch.dispatch(request.command, mode=request.mode, task_id=request.task_id)
            except (json.JSONDecodeError, ValidationError, ValueError, TaskNotFoundError) as e:
                await websocket.send_json(
                    TimerEvent(EventType.ERROR, {"message": str(e)}).to_dict()
                )
    except WebSocketDisconnect:
        logger.debug("WebSocket client disconnected")
    finally:
        sender.cancel()
        try:
            await sender
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.debug(f"WebSocket event forwarding stopped: {e}")
        orch.hub.unsubscribe(queue)
