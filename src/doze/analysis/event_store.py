"""
Bounded, thread-safe store of interaction events.

The store is a ring buffer: once capacity is reached each new event
overwrites the oldest one. Every event gets an insertion sequence number so
events sharing a timestamp keep their arrival order in sorted snapshots.
"""

import logging
import sys
import threading

from collections.abc import Callable
from datetime import datetime

from doze.constants import EngineConstants as EC
from doze.models.events import InteractionEvent

logger = logging.getLogger(__name__)

__all__ = ["EventStore"]


class EventStore:
    """
    Ring buffer of InteractionEvents guarded by a single lock.

    Readers get sorted copies, never the live buffer, so analysis can run
    without holding the lock.

    Example:
        >>> store = EventStore(capacity=1000)
        >>> store.add(event)
        >>> events = store.snapshot_sorted()
    """

    def __init__(
        self,
        capacity: int = EC.MAX_EVENTS,
        on_change: Callable[[], None] | None = None,
    ):
        """
        Initialize the store.

        Args:
            capacity: Maximum number of events kept
            on_change: Called after every mutation (outside the lock)
        """
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._capacity = capacity
        self._on_change = on_change
        self._lock = threading.Lock()
        self._slots: list[tuple[int, InteractionEvent]] = []
        self._next_slot = 0
        self._next_seq = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        with self._lock:
            return len(self._slots)

    def add(self, event: InteractionEvent) -> None:
        """Append an event, overwriting the oldest one when full."""
        with self._lock:
            entry = (self._next_seq, event)
            self._next_seq += 1
            if len(self._slots) < self._capacity:
                self._slots.append(entry)
            else:
                self._slots[self._next_slot] = entry
                self._next_slot = (self._next_slot + 1) % self._capacity
        self._notify()

    def snapshot_sorted(self) -> list[InteractionEvent]:
        """Chronologically sorted copy of the buffered events."""
        with self._lock:
            entries = list(self._slots)
        entries.sort(key=lambda entry: (entry[1].timestamp, entry[0]))
        return [event for _, event in entries]

    def latest_before(self, timestamp: datetime) -> InteractionEvent | None:
        """Most recent event at or before a timestamp, if any."""
        with self._lock:
            entries = list(self._slots)

        best: tuple[int, InteractionEvent] | None = None
        for seq, event in entries:
            if event.timestamp > timestamp:
                continue
            if best is None or (event.timestamp, seq) > (best[1].timestamp, best[0]):
                best = (seq, event)
        return best[1] if best else None

    def clear_older_than(self, cutoff: datetime) -> int:
        """
        Remove events that happened before a cutoff.

        Args:
            cutoff: Events with timestamp < cutoff are removed

        Returns:
            Number of events removed
        """
        with self._lock:
            kept = [entry for entry in self._slots if entry[1].timestamp >= cutoff]
            removed = len(self._slots) - len(kept)
            if removed:
                kept.sort(key=lambda entry: entry[0])
                self._slots = kept
                self._next_slot = 0

        if removed:
            logger.debug(f"Removed {removed} events older than {cutoff}")
            self._notify()
        return removed

    def clear(self) -> None:
        with self._lock:
            self._slots = []
            self._next_slot = 0
        self._notify()

    def approximate_size_bytes(self) -> int:
        """Rough memory footprint of the buffered events."""
        with self._lock:
            entries = list(self._slots)
        return sys.getsizeof(entries) + sum(
            sys.getsizeof(event) for _, event in entries
        )

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change()
