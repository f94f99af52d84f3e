"""Change notifications for the progress store.

The store publishes a ``StoreEvent`` after every mutation so that
presentation code (continue-watching rows, "In Progress" badges) can
re-render without polling. Subscribers are plain callables.

Example usage:

    >>> notifier = ChangeNotifier()
    >>> notifier.subscribe(StoreEventType.UPDATED, lambda event: print(event.content_id))
    >>> store = ProgressStore(MemoryBackend(), notifier=notifier)
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, auto
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class StoreEventType(Enum):
    """Kinds of store mutation."""

    LOADED = auto()
    UPDATED = auto()
    COMPLETED = auto()
    REMOVED = auto()
    CLEARED = auto()


@dataclass
class StoreEvent:
    """A single store mutation.

    Attributes:
        event_type: What happened.
        content_id: Affected item, or None for whole-store events.
        record: The stored record after an UPDATED event.
        count: Number of records affected (CLEARED, LOADED, bulk REMOVED).
        timestamp: When the event was created.
    """

    event_type: StoreEventType
    content_id: Optional[str] = None
    record: Optional[Any] = None
    count: int = 0
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __str__(self) -> str:
        target = self.content_id or f"{self.count} record(s)"
        return f"[{self.event_type.name}] {target}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": self.event_type.name,
            "content_id": self.content_id,
            "record": self.record.to_dict() if self.record is not None else None,
            "count": self.count,
            "timestamp": self.timestamp.isoformat(),
        }


EventCallback = Callable[[StoreEvent], None]


class ChangeNotifier:
    """Thread-safe subscriber registry for store events.

    Subscribers for a specific event type run before wildcard
    subscribers. Errors in callbacks are logged and do not stop delivery.
    """

    def __init__(self) -> None:
        self._subscribers: Dict[StoreEventType, List[EventCallback]] = {}
        self._wildcard_subscribers: List[EventCallback] = []
        self._lock = threading.RLock()
        self._events_emitted = 0

    def subscribe(
        self,
        event_type: Optional[StoreEventType],
        callback: EventCallback,
    ) -> None:
        """Subscribe to events of a specific type, or None for all."""
        with self._lock:
            if event_type is None:
                if callback not in self._wildcard_subscribers:
                    self._wildcard_subscribers.append(callback)
            else:
                subscribers = self._subscribers.setdefault(event_type, [])
                if callback not in subscribers:
                    subscribers.append(callback)

    def unsubscribe(
        self,
        event_type: Optional[StoreEventType],
        callback: EventCallback,
    ) -> bool:
        """Remove a subscription.

        Returns:
            True if callback was found and removed, False otherwise.
        """
        with self._lock:
            if event_type is None:
                if callback in self._wildcard_subscribers:
                    self._wildcard_subscribers.remove(callback)
                    return True
            elif callback in self._subscribers.get(event_type, []):
                self._subscribers[event_type].remove(callback)
                return True
            return False

    def emit(self, event: StoreEvent) -> None:
        """Deliver an event synchronously on the calling thread."""
        with self._lock:
            self._events_emitted += 1
            subscribers = list(self._subscribers.get(event.event_type, []))
            wildcards = list(self._wildcard_subscribers)

        for callback in subscribers + wildcards:
            self._safe_call(callback, event)

    def _safe_call(self, callback: EventCallback, event: StoreEvent) -> None:
        try:
            callback(event)
        except Exception as e:
            logger.error(
                f"Error in store event callback for {event.event_type.name}: {e}",
                exc_info=True,
            )

    def clear_subscribers(self) -> None:
        with self._lock:
            self._subscribers.clear()
            self._wildcard_subscribers.clear()

    def get_subscriber_count(self, event_type: Optional[StoreEventType] = None) -> int:
        """Count subscribers for a type, or all subscribers when None."""
        with self._lock:
            if event_type is None:
                return sum(len(subs) for subs in self._subscribers.values()) + len(
                    self._wildcard_subscribers
                )
            return len(self._subscribers.get(event_type, []))

    @property
    def events_emitted(self) -> int:
        return self._events_emitted
