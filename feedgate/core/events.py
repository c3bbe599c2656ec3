"""
Gateway Event Channel

Typed, in-process notifications published by the session and its
components. Replaces an event-emitter base class: subscribers receive
their own bounded asyncio.Queue and read events at their own pace.

Delivery is best-effort. A subscriber that stops reading loses its
oldest events, never blocks a publisher.
"""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from feedgate.core.logging.logger import get_logger

logger = get_logger(__name__)


class GatewayEventType(str, Enum):
    """Events a subscriber may observe."""

    READY = "ready"
    TOKEN_REFRESHED = "token_refreshed"
    RATE_LIMITED = "rate_limited"
    TASK_RETRYING = "task_retrying"
    TASK_DEAD_LETTERED = "task_dead_lettered"
    OBJECTS_INGESTED = "objects_ingested"


@dataclass(frozen=True)
class GatewayEvent:
    type: GatewayEventType
    payload: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)


class EventChannel:
    """
    Fan-out channel for GatewayEvents.

    Usage:
        events = EventChannel()
        queue = events.subscribe()
        event = await queue.get()
        events.unsubscribe(queue)
    """

    def __init__(self, max_queue_size: int = 256):
        self._max_queue_size = max_queue_size
        self._subscribers: list[asyncio.Queue[GatewayEvent]] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> "asyncio.Queue[GatewayEvent]":
        queue: asyncio.Queue[GatewayEvent] = asyncio.Queue(maxsize=self._max_queue_size)
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: "asyncio.Queue[GatewayEvent]") -> None:
        if queue in self._subscribers:
            self._subscribers.remove(queue)

    def publish(self, event_type: GatewayEventType, **payload: Any) -> GatewayEvent:
        """
        Deliver an event to every subscriber without awaiting.

        Returns:
            The published event
        """
        event = GatewayEvent(type=event_type, payload=payload)

        for queue in self._subscribers:
            if queue.full():
                # Slow subscriber: drop its oldest event
                queue.get_nowait()
                logger.debug("Dropped oldest event for slow subscriber", event_type=event_type.value)
            queue.put_nowait(event)

        return event
