"""In-process event fan-out for real-time clients."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Event types pushed to subscribers."""

    TIMER_SYNC = "TIMER_SYNC"
    SESSION_END = "SESSION_END"
    SETTINGS_UPDATED = "SETTINGS_UPDATED"
    TASK_SELECTED = "TASK_SELECTED"
    CONNECTION_ESTABLISHED = "CONNECTION_ESTABLISHED"
    ERROR = "ERROR"


@dataclass
class TimerEvent:
    """Message envelope sent over the WebSocket."""

    type: EventType
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
        }


class EventHub:
    """Publish/subscribe hub with one bounded queue per subscriber.

    A slow subscriber loses its oldest events instead of blocking publishers.
    """

    def __init__(self, max_queue_size: int = 100):
        self.max_queue_size = max_queue_size
        self._subscribers: set[asyncio.Queue[TimerEvent]] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> asyncio.Queue[TimerEvent]:
        queue: asyncio.Queue[TimerEvent] = asyncio.Queue(maxsize=self.max_queue_size)
        self._subscribers.add(queue)
        logger.debug(f"Subscriber added ({len(self._subscribers)} total)")
        return queue

    def unsubscribe(self, queue: asyncio.Queue[TimerEvent]) -> None:
        self._subscribers.discard(queue)
        logger.debug(f"Subscriber removed ({len(self._subscribers)} total)")

    def publish(self, event_type: EventType, data: dict[str, Any] | None = None) -> TimerEvent:
        """Send an event to every subscriber."""
        event = TimerEvent(type=event_type, data=data or {})
        for queue in list(self._subscribers):
            if queue.full():
                try:
                    queue.get_nowait()
                except asyncio.QueueEmpty:
                    pass
            queue.put_nowait(event)
        return event
