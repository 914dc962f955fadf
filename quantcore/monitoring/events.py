"""Engine observability events.

The core publishes one-way notifications (order submitted / settled /
rejected, tick usage, engine lifecycle). Publishing never blocks: events are
put on an unbounded queue and delivered to subscribers by a background
dispatcher thread, or synchronously by ``drain()``.
"""

import queue
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from quantcore.utils.logging import get_logger

logger = get_logger(__name__)

Subscriber = Callable[["EngineEvent"], None]


class EngineEventType(Enum):
    """Types of engine events."""

    # Order events
    ORDER_SUBMITTED = "order_submitted"
    ORDER_SETTLED = "order_settled"
    ORDER_REJECTED = "order_rejected"

    # Queue events
    TICK_USAGE = "tick_usage"

    # Engine events
    ENGINE_STARTED = "engine_started"
    ENGINE_STOPPED = "engine_stopped"
    ALLOCATION_CHANGED = "allocation_changed"
    EVALUATION_SKIPPED = "evaluation_skipped"


@dataclass(frozen=True)
class EngineEvent:
    """A single notification.

    Attributes:
        event_type: What happened
        payload: Event details (order id, reason, count, ...)
        timestamp: When it was published
    """

    event_type: EngineEventType
    payload: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)


class EventBus:
    """Non-blocking publish/subscribe channel.

    Example:
        >>> bus = EventBus()
        >>> seen = []
        >>> bus.subscribe(seen.append)
        >>> bus.publish(EngineEventType.TICK_USAGE, count=3)
        >>> bus.drain()
        1
        >>> seen[0].payload["count"]
        3
    """

    def __init__(self):
        self._queue: "queue.SimpleQueue[Optional[EngineEvent]]" = queue.SimpleQueue()
        self._subscribers: List[Subscriber] = []
        self._subscribers_lock = threading.Lock()
        self._deliver_lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None

    def subscribe(self, subscriber: Subscriber) -> None:
        with self._subscribers_lock:
            self._subscribers.append(subscriber)

    def unsubscribe(self, subscriber: Subscriber) -> None:
        with self._subscribers_lock:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

    def publish(self, event_type: EngineEventType, **payload: Any) -> None:
        """Queue an event for delivery. Never blocks."""
        self._queue.put(EngineEvent(event_type=event_type, payload=payload))

    def drain(self) -> int:
        """Deliver every queued event on the calling thread.

        Returns:
            Number of events delivered
        """
        delivered = 0
        while True:
            try:
                event = self._queue.get_nowait()
            except queue.Empty:
                return delivered
            if event is None:
                continue
            self._deliver(event)
            delivered += 1

    @property
    def is_dispatching(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start_dispatcher(self) -> None:
        """Start delivering events on a background daemon thread."""
        if self.is_dispatching:
            return
        self._thread = threading.Thread(
            target=self._run, name="quantcore-events", daemon=True
        )
        self._thread.start()

    def stop_dispatcher(self, timeout: float = 5.0) -> None:
        """Stop the dispatcher thread and deliver anything still queued."""
        if self._thread is not None:
            self._queue.put(None)
            self._thread.join(timeout)
            self._thread = None
        self.drain()

    def _run(self) -> None:
        while True:
            event = self._queue.get()
            if event is None:
                return
            self._deliver(event)

    def _deliver(self, event: EngineEvent) -> None:
        with self._subscribers_lock:
            subscribers = list(self._subscribers)

        # Serialize delivery so subscribers see events in publish order
        with self._deliver_lock:
            for subscriber in subscribers:
                try:
                    subscriber(event)
                except Exception as e:
                    logger.error(
                        "Event subscriber %r failed on %s: %s",
                        subscriber,
                        event.event_type.value,
                        e,
                        exc_info=True,
                    )


class EventLog:
    """Keeps the most recent events, newest first.

    Subscribe an instance to an ``EventBus`` to feed it.
    """

    def __init__(self, capacity: int = 40):
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self._events: deque = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def __call__(self, event: EngineEvent) -> None:
        with self._lock:
            self._events.appendleft(event)

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def recent(self, event_type: Optional[EngineEventType] = None) -> List[EngineEvent]:
        """Recent events, newest first, optionally filtered by type."""
        with self._lock:
            events = list(self._events)
        if event_type is None:
            return events
        return [e for e in events if e.event_type == event_type]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()
