"""Bounded cache of recently accepted webhook events.

Strict insertion order: the oldest inserted event is evicted first, reads
never reorder, and re-putting an existing id replaces the stored event in
place (last write wins, eviction position unchanged).
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from typing import TYPE_CHECKING

from payment_relay.errors import EventNotFoundError

if TYPE_CHECKING:
    from payment_relay.webhooks.events import VerifiedEvent

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 100


class EventCache:
    """Thread-safe FIFO store of the most recent *capacity* events.

    Usage::

        cache = EventCache(capacity=100)
        cache.put(event)
        cache.get(event.id)
        cache.recent(10)
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            msg = f"capacity must be >= 1, got {capacity}"
            raise ValueError(msg)
        self._capacity = capacity
        self._events: OrderedDict[str, VerifiedEvent] = OrderedDict()
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        """Maximum number of retained events."""
        return self._capacity

    def put(self, event: VerifiedEvent) -> None:
        """Store *event*, evicting the oldest entry when at capacity."""
        evicted: str | None = None
        with self._lock:
            if event.id in self._events:
                self._events[event.id] = event
                return
            if len(self._events) >= self._capacity:
                evicted, _ = self._events.popitem(last=False)
            self._events[event.id] = event
        if evicted is not None:
            logger.debug("Evicted cached webhook event %s", evicted)

    def find(self, event_id: str) -> VerifiedEvent | None:
        """Return the cached event or ``None``."""
        with self._lock:
            return self._events.get(event_id)

    def get(self, event_id: str) -> VerifiedEvent:
        """Return the cached event.

        Raises:
            EventNotFoundError: If *event_id* is not cached.
        """
        event = self.find(event_id)
        if event is None:
            raise EventNotFoundError(event_id)
        return event

    def recent(self, n: int | None = None) -> list[VerifiedEvent]:
        """Return up to *n* most recent events, oldest first.

        ``None`` returns every retained event. The result is a snapshot list,
        so callers may iterate it any number of times.
        """
        with self._lock:
            events = list(self._events.values())
        if n is None:
            return events
        if n <= 0:
            return []
        return events[-n:]

    def clear(self) -> None:
        """Drop every cached event."""
        with self._lock:
            self._events.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def __contains__(self, event_id: object) -> bool:
        with self._lock:
            return event_id in self._events
