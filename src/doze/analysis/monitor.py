"""Lightweight latency and counter tracking for the tracking service."""

import threading
import time

from collections.abc import Iterator
from contextlib import contextmanager

__all__ = ["PerformanceMonitor"]


class PerformanceMonitor:
    """
    Rolling average latency per operation, plus named counters.

    Example:
        >>> monitor = PerformanceMonitor()
        >>> with monitor.measure("detect_sleep"):
        ...     run_detection()
        >>> monitor.metrics()["detect_sleep_avg_us"]
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._averages: dict[str, float] = {}
        self._samples: dict[str, int] = {}
        self._counters: dict[str, int] = {}

    @contextmanager
    def measure(self, operation: str) -> Iterator[None]:
        start = time.perf_counter()
        try:
            yield
        finally:
            elapsed_us = (time.perf_counter() - start) * 1_000_000
            self.record(operation, elapsed_us)

    def record(self, operation: str, elapsed_us: float) -> None:
        """Fold one latency sample into the operation's running mean."""
        with self._lock:
            count = self._samples.get(operation, 0) + 1
            previous = self._averages.get(operation, 0.0)
            self._averages[operation] = previous + (elapsed_us - previous) / count
            self._samples[operation] = count

    def increment(self, counter: str, amount: int = 1) -> None:
        with self._lock:
            self._counters[counter] = self._counters.get(counter, 0) + amount

    def count(self, counter: str) -> int:
        with self._lock:
            return self._counters.get(counter, 0)

    def average_us(self, operation: str) -> float:
        with self._lock:
            return self._averages.get(operation, 0.0)

    def metrics(self) -> dict[str, float]:
        """Flat snapshot: '<op>_avg_us', '<op>_samples' and every counter."""
        with self._lock:
            snapshot: dict[str, float] = {}
            for operation, average in self._averages.items():
                snapshot[f"{operation}_avg_us"] = average
                snapshot[f"{operation}_samples"] = float(self._samples[operation])
            for counter, value in self._counters.items():
                snapshot[counter] = float(value)
            return snapshot

    def reset(self) -> None:
        with self._lock:
            self._averages.clear()
            self._samples.clear()
            self._counters.clear()
