"""
Clock and event queue: the global, causally ordered dispatcher.

Events are records, not callbacks. Each carries a kind tag and the data its
handler needs; the simulation dispatches every kind from a single handle()
switch. The queue is a binary heap keyed by (time, sequence) so that events
scheduled for the same instant are dispatched in insertion order.

The clock only moves forward: it is set to an event's timestamp when that
event is popped, and no event can be scheduled in the past.
"""

from __future__ import annotations
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable
import heapq
import logging

from fogsim.core.errors import InvalidDelay

logger = logging.getLogger(__name__)


class EventKind(Enum):
    SENSOR_TICK = "sensor_tick"
    TUPLE_ARRIVAL = "tuple_arrival"
    PROCESS_COMPLETE = "process_complete"
    MOBILITY_UPDATE = "mobility_update"
    STOP = "stop"  # Terminal event injected by the caller


@dataclass
class Event:
    """
    A scheduled occurrence.

    target is the id of the node (or sensor) the event concerns; payload is
    whatever the handler for this kind needs (usually a tuple in flight).
    time and seq are assigned by the queue on insertion.
    """

    kind: EventKind
    target: Any = None
    payload: Any = None
    time: float = field(default=0.0, init=False)
    seq: int = field(default=-1, init=False)


class EventQueue:
    """
    Min-heap of events ordered by (time, insertion sequence).

    Usage:
        queue = EventQueue()
        queue.schedule(Event(EventKind.SENSOR_TICK, target=0), delay=0.0)
        queue.run(handler)   # returns when no more future events exist
    """

    def __init__(self):
        self.now: float = 0.0
        self._heap: list[tuple[float, int, Event]] = []
        self._seq = 0
        self._pending_by_kind: Counter = Counter()
        self.dispatched = 0

    def schedule(self, event: Event, delay: float) -> Event:
        """Insert event at now + delay. Negative delays are a programming defect."""
        if delay < 0:
            raise InvalidDelay(delay, event.kind.value)
        event.time = self.now + delay
        event.seq = self._seq
        self._seq += 1
        heapq.heappush(self._heap, (event.time, event.seq, event))
        self._pending_by_kind[event.kind] += 1
        return event

    def pop(self) -> Event:
        """Remove the earliest event and advance the clock to its timestamp."""
        if not self._heap:
            raise IndexError("pop from empty event queue")
        time, _, event = heapq.heappop(self._heap)
        self._pending_by_kind[event.kind] -= 1
        self.now = time
        return event

    def peek_time(self) -> float | None:
        """Timestamp of the next event, or None if the queue is empty."""
        if not self._heap:
            return None
        return self._heap[0][0]

    def run(self, dispatch: Callable[[Event], None]) -> int:
        """
        Dispatch events until no future events remain.

        Handlers may schedule further events. Returns the number of events
        dispatched by this call.
        """
        count = 0
        while self._heap:
            event = self.pop()
            logger.debug("t=%.3f dispatch %s target=%s", event.time, event.kind.value, event.target)
            dispatch(event)
            count += 1
        self.dispatched += count
        return count

    def pending(self, kind: EventKind | None = None) -> int:
        """Number of queued events, optionally restricted to one kind."""
        if kind is None:
            return len(self._heap)
        return self._pending_by_kind[kind]

    def clear(self) -> int:
        """Drop every queued event (the only cancellation primitive). Returns how many."""
        dropped = len(self._heap)
        self._heap.clear()
        self._pending_by_kind.clear()
        return dropped

    def reset(self) -> None:
        """Drop every event and rewind the clock to zero."""
        self.clear()
        self.now = 0.0
        self._seq = 0
        self.dispatched = 0

    def __len__(self) -> int:
        return len(self._heap)
