"""EventBus for in-process event fan-out.

Lets control-socket subscribers see history appends as they happen.
Events: message
"""

import queue
import threading
from dataclasses import dataclass, field
from datetime import datetime

MESSAGE_EVENT = "message"


@dataclass
class Event:
    """An event broadcast to listeners."""

    event_type: str
    data: dict
    timestamp: datetime = field(default_factory=datetime.now)
    id: int = 0


class EventBus:
    """Central event bus for broadcasting events.

    Features:
    - Per-listener queues for blocking consumers (socket subscribers)
    - Listeners that fall behind are dropped
    - Thread-safe operation
    """

    def __init__(self, queue_size: int = 100):
        """Initialize the EventBus.

        Args:
            queue_size: Capacity of each listener queue; a full queue is dropped.
        """
        self._queue_size = queue_size
        self._queues: list[queue.Queue] = []
        self._lock = threading.Lock()
        self._event_counter = 0

    def emit(self, event_type: str, data: dict) -> Event:
        """Emit an event to all listener queues.

        Args:
            event_type: The type of event (e.g., "message").
            data: The event data.

        Returns:
            The created Event object.
        """
        with self._lock:
            self._event_counter += 1
            event = Event(event_type=event_type, data=data, id=self._event_counter)

            dead_queues = []
            for q in self._queues:
                try:
                    q.put_nowait(event)
                except queue.Full:
                    dead_queues.append(q)
            for q in dead_queues:
                self._queues.remove(q)

        return event

    def open_queue(self) -> queue.Queue:
        """Register a blocking listener; every later event is queued to it."""
        event_queue: queue.Queue = queue.Queue(maxsize=self._queue_size)
        with self._lock:
            self._queues.append(event_queue)
        return event_queue

    def close_queue(self, event_queue: queue.Queue) -> None:
        with self._lock:
            if event_queue in self._queues:
                self._queues.remove(event_queue)

    @property
    def listener_count(self) -> int:
        """Get the number of open listener queues."""
        with self._lock:
            return len(self._queues)


# Singleton instance for the application
_event_bus: EventBus | None = None


def get_event_bus() -> EventBus:
    """Get the global EventBus instance."""
    global _event_bus
    if _event_bus is None:
        _event_bus = EventBus()
    return _event_bus


def reset_event_bus() -> None:
    """Reset the global EventBus (for testing)."""
    global _event_bus
    _event_bus = None
