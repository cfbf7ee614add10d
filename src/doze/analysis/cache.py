"""Time-limited cache for the latest sleep detection result."""

import logging
import threading

from datetime import datetime, timedelta

from doze.constants import EngineConstants as EC
from doze.models.result import SleepDetectionResult

logger = logging.getLogger(__name__)

__all__ = ["ResultCache"]


class ResultCache:
    """
    Holds one detection result together with the time it was computed.

    Every invalidation bumps a generation counter. A caller reads the
    generation before taking its snapshot and hands it back to store(); if
    anything invalidated the cache in between, the stale result is dropped.
    """

    def __init__(self, validity: timedelta = EC.CACHE_VALIDITY):
        self.validity = validity
        self._lock = threading.Lock()
        self._result: SleepDetectionResult | None = None
        self._cached_at: datetime | None = None
        self._generation = 0

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def get(self, now: datetime) -> SleepDetectionResult | None:
        """Cached result if it is younger than the validity window."""
        with self._lock:
            if self._result is None or self._cached_at is None:
                return None
            age = now - self._cached_at
            if timedelta(0) <= age < self.validity:
                return self._result
            return None

    def store(
        self, result: SleepDetectionResult, now: datetime, generation: int
    ) -> bool:
        """
        Cache a result computed from data seen at the given generation.

        Returns:
            True if stored, False if the cache was invalidated meanwhile
        """
        with self._lock:
            if generation != self._generation:
                logger.debug("Discarding result computed from stale data")
                return False
            self._result = result
            self._cached_at = now
            return True

    def invalidate(self) -> None:
        with self._lock:
            self._generation += 1
            self._result = None
            self._cached_at = None
