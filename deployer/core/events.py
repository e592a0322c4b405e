"""Event system for Server-Sent Events (SSE)."""

import asyncio
import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class Event:
    """An SSE event."""

    event_type: str
    data: dict[str, Any]
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def to_json(self) -> str:
        """Serialize the payload for an SSE data field."""
        return json.dumps({**self.data, "timestamp": self.timestamp.isoformat()})


TERMINAL_EVENTS = ("deployment_complete", "error")


class EventBus:
    """Simple event bus for deployment events."""

    def __init__(self):
        self._subscribers: dict[str, list[asyncio.Queue[Event]]] = {}

    def subscribe(self, deployment_id: str) -> asyncio.Queue[Event]:
        """Subscribe to events for a deployment."""
        queue: asyncio.Queue[Event] = asyncio.Queue()
        self._subscribers.setdefault(deployment_id, []).append(queue)
        return queue

    def unsubscribe(self, deployment_id: str, queue: asyncio.Queue[Event]) -> None:
        """Unsubscribe from deployment events."""
        queues = self._subscribers.get(deployment_id, [])
        if queue in queues:
            queues.remove(queue)
        if not queues:
            self._subscribers.pop(deployment_id, None)

    async def publish(self, deployment_id: str, event: Event) -> None:
        """Publish an event for a deployment."""
        for queue in self._subscribers.get(deployment_id, []):
            await queue.put(event)

    async def publish_stage_started(self, deployment_id: str, stage: str) -> None:
        """Publish a stage started event."""
        await self.publish(
            deployment_id,
            Event(event_type="stage_started", data={"stage": stage}),
        )

    async def publish_stage_completed(
        self, deployment_id: str, stage: str, duration_ms: int
    ) -> None:
        """Publish a stage completed event."""
        await self.publish(
            deployment_id,
            Event(
                event_type="stage_completed",
                data={"stage": stage, "duration_ms": duration_ms},
            ),
        )

    async def publish_deployment_complete(
        self, deployment_id: str, image_uri: str | None
    ) -> None:
        """Publish a deployment complete event."""
        await self.publish(
            deployment_id,
            Event(event_type="deployment_complete", data={"image_uri": image_uri}),
        )

    async def publish_error(
        self, deployment_id: str, error: str, stage: str | None = None
    ) -> None:
        """Publish an error event."""
        await self.publish(
            deployment_id,
            Event(
                event_type="error",
                data={"error": error, "stage": stage},
            ),
        )


# Singleton instance
_event_bus: EventBus | None = None


def get_event_bus() -> EventBus:
    """Get the event bus singleton."""
    global _event_bus
    if _event_bus is None:
        _event_bus = EventBus()
    return _event_bus
