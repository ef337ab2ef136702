"""Event system for Server-Sent Events (SSE)."""

import asyncio
import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

TERMINAL_EVENTS = ("deployment_ready", "promotion_ready", "error")


@dataclass
class Event:
    """An SSE event."""

    event_type: str
    data: dict[str, Any]
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def to_json(self) -> str:
        """Serialize the payload for an SSE data field."""
        return json.dumps({**self.data, "timestamp": self.timestamp.isoformat()}, default=str)

    @property
    def is_terminal(self) -> bool:
        return self.event_type in TERMINAL_EVENTS


class EventBus:
    """Simple event bus for per-app pipeline events."""

    def __init__(self):
        self._subscribers: dict[str, asyncio.Queue[Event]] = {}

    def subscribe(self, app_id: str) -> asyncio.Queue[Event]:
        """Subscribe to events for an app."""
        if app_id not in self._subscribers:
            self._subscribers[app_id] = asyncio.Queue()
        return self._subscribers[app_id]

    def unsubscribe(self, app_id: str) -> None:
        """Unsubscribe from app events."""
        self._subscribers.pop(app_id, None)

    async def publish(self, app_id: str, event: Event) -> None:
        """Publish an event for an app."""
        if app_id in self._subscribers:
            await self._subscribers[app_id].put(event)

    async def publish_phase_started(self, app_id: str, phase: str) -> None:
        await self.publish(
            app_id,
            Event(event_type="phase_started", data={"phase": phase}),
        )

    async def publish_phase_completed(
        self, app_id: str, phase: str, duration_ms: int
    ) -> None:
        await self.publish(
            app_id,
            Event(
                event_type="phase_completed",
                data={"phase": phase, "duration_ms": duration_ms},
            ),
        )

    async def publish_deployment_ready(
        self, app_id: str, url: str, environment: str
    ) -> None:
        event_type = "promotion_ready" if environment == "production" else "deployment_ready"
        await self.publish(
            app_id,
            Event(event_type=event_type, data={"url": url, "environment": environment}),
        )

    async def publish_error(
        self, app_id: str, error: dict[str, Any], phase: str | None = None
    ) -> None:
        await self.publish(
            app_id,
            Event(event_type="error", data={"error": error, "phase": phase}),
        )


# Singleton instance
_event_bus: EventBus | None = None


def get_event_bus() -> EventBus:
    """Get the event bus singleton."""
    global _event_bus
    if _event_bus is None:
        _event_bus = EventBus()
    return _event_bus
