"""
Sleep tracking service.

This module provides the public engine: event ingestion, cached sleep
detection, real-time "asleep now?" queries, preference updates, pattern
feedback and maintenance hooks. Each engine owns its own state; there is no
process-wide instance.
"""

import logging
import threading

from collections.abc import Mapping
from datetime import datetime, timedelta
from typing import Any

from pydantic import ValidationError

from doze.analysis.cache import ResultCache
from doze.analysis.classifier import classify_event
from doze.analysis.detector import SleepDetector
from doze.analysis.event_store import EventStore
from doze.analysis.gap_detector import find_last_meaningful
from doze.analysis.monitor import PerformanceMonitor
from doze.analysis.pattern_matcher import PatternMatcher
from doze.analysis.scoring import calculate_confidence_score
from doze.constants import (
    AppCategory,
    InteractionKind,
    parse_app_category,
)
from doze.constants import EngineConstants as EC
from doze.models.events import InteractionEvent
from doze.models.preferences import UserPreferences
from doze.models.result import SleepDetectionResult
from doze.models.statistics import EngineStatistics, WeeklyPatternSnapshot

logger = logging.getLogger(__name__)

__all__ = ["SleepTrackingService"]


class SleepTrackingService:
    """
    Thread-safe sleep/wake inference engine.

    The event store, result cache, pattern model, preferences and metrics
    are each guarded separately, so ingestion on one thread never waits for
    a detection running on another.

    Example:
        >>> service = SleepTrackingService()
        >>> service.add_interaction_event(ts, AppCategory.SOCIAL, 45_000)
        >>> result = service.detect_sleep(now)
        >>> if result.is_valid():
        ...     service.record_completed_sleep(result)
    """

    def __init__(
        self,
        preferences: UserPreferences | None = None,
        *,
        capacity: int = EC.MAX_EVENTS,
        cache_validity: timedelta = EC.CACHE_VALIDITY,
        pattern_matcher: PatternMatcher | None = None,
        auto_learn: bool = False,
    ):
        """
        Initialize the service.

        Args:
            preferences: Initial preferences (defaults if omitted)
            capacity: Maximum number of buffered events
            cache_validity: How long a detection result is reused
            pattern_matcher: Weekly pattern model to share or restore
            auto_learn: Feed every valid detection back into the pattern
                model instead of waiting for record_completed_sleep()
        """
        self._preferences = preferences or UserPreferences()
        self._preferences_lock = threading.Lock()

        self.cache = ResultCache(validity=cache_validity)
        self.store = EventStore(capacity=capacity, on_change=self.cache.invalidate)
        self.pattern_matcher = pattern_matcher or PatternMatcher()
        self.detector = SleepDetector(self.pattern_matcher)
        self.monitor = PerformanceMonitor()
        self.auto_learn = auto_learn

        self._stats_lock = threading.Lock()
        self._confidence_total = 0.0
        self._confidence_samples = 0
        self._learned_sessions: set[tuple[datetime, datetime]] = set()
        self._detected_sessions: set[tuple[datetime, datetime]] = set()

        logger.info(f"SleepTrackingService initialized (capacity={capacity})")

    # ========================================================================
    # Preferences
    # ========================================================================

    @property
    def preferences(self) -> UserPreferences:
        with self._preferences_lock:
            return self._preferences

    def update_preferences(
        self, preferences: UserPreferences | Mapping[str, Any]
    ) -> bool:
        """
        Replace the active preferences.

        A mapping is applied on top of the current preferences. Invalid
        input is rejected and the previous preferences stay in effect.

        Returns:
            True if the update was applied
        """
        current = self.preferences
        if isinstance(preferences, UserPreferences):
            candidate = preferences.model_dump()
        else:
            candidate = {**current.model_dump(), **dict(preferences)}

        try:
            validated = UserPreferences.model_validate(candidate)
        except ValidationError as e:
            logger.warning(f"Rejected preference update: {e.error_count()} errors")
            logger.debug(str(e))
            return False

        with self._preferences_lock:
            self._preferences = validated
        self.cache.invalidate()
        logger.info("Preferences updated")
        return True

    # ========================================================================
    # Ingestion
    # ========================================================================

    def add_interaction_event(
        self,
        timestamp: datetime,
        app_category: AppCategory | int | str,
        duration_ms: float,
        *,
        kind: InteractionKind | None = None,
        app_hash: int = 0,
        session_id: int = 0,
        interaction_count_in_session: int = 0,
    ) -> InteractionKind:
        """
        Classify and store one observed interaction.

        Args:
            timestamp: When the interaction started
            app_category: Category enum, code or name
            duration_ms: Interaction length in milliseconds
            kind: Upstream classification, if any

        Returns:
            Resolved interaction kind, UNKNOWN if the event was rejected
        """
        try:
            event = InteractionEvent(
                timestamp=timestamp,
                duration=timedelta(milliseconds=duration_ms),
                kind=kind if kind is not None else InteractionKind.UNKNOWN,
                app_category=parse_app_category(app_category),
                app_hash=app_hash,
                session_id=session_id,
                interaction_count_in_session=interaction_count_in_session,
            )
        except (ValidationError, ValueError, TypeError, OverflowError) as e:
            logger.warning(f"Rejected interaction event at {timestamp}: {e}")
            return InteractionKind.UNKNOWN

        return self.add_event(event)

    def add_event(self, event: InteractionEvent) -> InteractionKind:
        """Classify and store a pre-built event; returns its resolved kind."""
        with self.monitor.measure("add_event"):
            context = self.store.latest_before(event.timestamp)
            classified = classify_event(
                event, context, self.preferences.time_check_threshold
            )
            self.store.add(classified)
        self.monitor.increment("events_processed")
        return classified.kind

    def confirm_manual_sleep(self, timestamp: datetime) -> None:
        """Record the user's explicit "going to sleep" confirmation."""
        self.store.add(
            InteractionEvent(
                timestamp=timestamp,
                kind=InteractionKind.MANUAL_SLEEP_CONFIRMATION,
            )
        )
        self.monitor.increment("manual_confirmations")
        logger.info(f"Manual sleep confirmation recorded at {timestamp}")

    # ========================================================================
    # Detection
    # ========================================================================

    def detect_sleep(self, now: datetime) -> SleepDetectionResult:
        """
        Detect the most plausible sleep period up to now.

        Served from cache while the cached result is younger than the
        validity window and nothing has changed since.
        """
        cached = self.cache.get(now)
        if cached is not None:
            self.monitor.increment("cache_hits")
            return cached
        self.monitor.increment("cache_misses")

        generation = self.cache.generation
        events = self.store.snapshot_sorted()
        preferences = self.preferences

        with self.monitor.measure("detect_sleep"):
            result = self.detector.detect(events, preferences, now)

        self.cache.store(result, now, generation)
        self.monitor.increment("detections")
        if result.is_valid():
            if self._record_detection(result, preferences.target_sleep_hours):
                self.monitor.increment("sleep_periods_detected")
            if self.auto_learn:
                self.record_completed_sleep(result)
        return result

    def detect_sleep_history(
        self, now: datetime | None = None
    ) -> list[SleepDetectionResult]:
        """Detect every completed sleep period in the buffered events."""
        events = self.store.snapshot_sorted()
        preferences = self.preferences
        with self.monitor.measure("detect_sleep_history"):
            results = self.detector.detect_all(events, preferences, now)
        logger.info(f"Detected {len(results)} sleep periods in {len(events)} events")
        return results

    def is_currently_asleep(self, now: datetime) -> bool:
        """
        Fast check without running full detection.

        True once the quiet time since the last meaningful interaction
        reaches the minimum gap. With smart detection, the learned schedule
        can also vouch for sleep earlier.
        """
        events = self.store.snapshot_sorted()
        last = find_last_meaningful(events, now)
        if last is None:
            return False

        preferences = self.preferences
        if now - last.timestamp >= preferences.minimum_interaction_gap:
            return True
        return preferences.enable_smart_detection and (
            self.pattern_matcher.is_likely_sleep_time(now, last.timestamp)
        )

    def get_estimated_sleep_start(self, now: datetime) -> datetime | None:
        """Time of the last meaningful interaction if the user is asleep."""
        if not self.is_currently_asleep(now):
            return None
        last = find_last_meaningful(self.store.snapshot_sorted(), now)
        return last.timestamp if last else None

    def calculate_confidence_score(self, result: SleepDetectionResult) -> float:
        return calculate_confidence_score(
            result, self.preferences.target_sleep_hours
        )

    # ========================================================================
    # Pattern feedback
    # ========================================================================

    def record_completed_sleep(self, result: SleepDetectionResult) -> bool:
        """
        Teach the pattern model from a verified sleep session.

        Each session is learned once; repeats and invalid results are
        ignored.

        Returns:
            True if the pattern model was updated
        """
        if not result.is_valid():
            return False
        assert result.bedtime is not None and result.wake_time is not None

        key = (result.bedtime, result.wake_time)
        with self._stats_lock:
            if key in self._learned_sessions:
                return False
            self._learned_sessions.add(key)

        updated = self.pattern_matcher.update_patterns(result)
        if updated:
            self.cache.invalidate()
        return updated

    def get_weekly_pattern(self) -> WeeklyPatternSnapshot:
        return self.pattern_matcher.snapshot()

    # ========================================================================
    # Maintenance
    # ========================================================================

    def clear_old_data(self, cutoff: datetime) -> None:
        """Drop events older than a cutoff."""
        removed = self.store.clear_older_than(cutoff)
        self.cache.invalidate()
        if removed:
            logger.info(f"Cleared {removed} events older than {cutoff}")

    def optimize_memory(self, now: datetime | None = None) -> None:
        """
        Reclaim memory: keep one week of events and reset metrics.

        Args:
            now: Reference time; defaults to the newest buffered event
        """
        if now is None:
            events = self.store.snapshot_sorted()
            now = events[-1].timestamp if events else None

        if now is not None:
            self.store.clear_older_than(now - EC.OPTIMIZE_RETENTION)
        self.cache.invalidate()
        self.monitor.reset()
        with self._stats_lock:
            self._confidence_total = 0.0
            self._confidence_samples = 0
            self._detected_sessions.clear()
        logger.info(f"Memory optimized, {len(self.store)} events retained")

    # ========================================================================
    # Metrics
    # ========================================================================

    def get_performance_metrics(self) -> dict[str, float]:
        metrics = self.monitor.metrics()
        metrics["buffered_events"] = float(len(self.store))
        metrics["cache_hit_rate"] = self._cache_hit_rate()
        return metrics

    def get_statistics(self) -> EngineStatistics:
        with self._stats_lock:
            samples = self._confidence_samples
            average_confidence = self._confidence_total / samples if samples else 0.0

        return EngineStatistics(
            total_events_processed=self.monitor.count("events_processed"),
            sleep_periods_detected=self.monitor.count("sleep_periods_detected"),
            average_confidence_score=average_confidence,
            average_detection_time_us=self.monitor.average_us("detect_sleep"),
            cache_hit_rate=self._cache_hit_rate(),
            buffered_events=len(self.store),
            memory_usage_bytes=self.store.approximate_size_bytes(),
        )

    def _cache_hit_rate(self) -> float:
        hits = self.monitor.count("cache_hits")
        total = hits + self.monitor.count("cache_misses")
        return hits / total if total else 0.0

    def _record_detection(
        self, result: SleepDetectionResult, target_hours: float
    ) -> bool:
        """Count a detected night once, however often it is recomputed."""
        key = (result.bedtime, result.wake_time)
        score = calculate_confidence_score(result, target_hours)
        with self._stats_lock:
            if key in self._detected_sessions:
                return False
            self._detected_sessions.add(key)
            self._confidence_total += score
            self._confidence_samples += 1
        return True
