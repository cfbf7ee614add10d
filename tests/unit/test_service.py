"""
Tests for SleepTrackingService: ingestion, caching, real-time queries,
preference updates, pattern feedback and maintenance.
"""

from datetime import timedelta

import pytest

from doze.analysis.service import SleepTrackingService
from doze.constants import AppCategory, InteractionKind, SleepConfidence
from doze.models.preferences import UserPreferences
from doze.models.result import SleepDetectionResult
from tests.helpers.synthetic_data import at, generate_night


def _load(service, events):
    for event in events:
        service.add_event(event)


def _learned_session(bedtime, hours=8.0):
    return SleepDetectionResult(
        bedtime=bedtime,
        wake_time=bedtime + timedelta(hours=hours),
        duration_hours=hours,
        confidence=SleepConfidence.MEDIUM,
    )


class TestIngestion:
    @pytest.mark.parametrize(
        "duration_ms, expected",
        [
            (5_000, InteractionKind.TIME_CHECK),
            (20_000, InteractionKind.TIME_CHECK),
            (45_000, InteractionKind.MEANINGFUL_USE),
            (600_000, InteractionKind.EXTENDED_USE),
        ],
    )
    def test_classification(self, service, duration_ms, expected):
        kind = service.add_interaction_event(at(0, 12), AppCategory.SOCIAL, duration_ms)
        assert kind == expected
        assert len(service.store) == 1

    def test_short_recheck_continues_session(self, service):
        service.add_interaction_event(at(0, 12), AppCategory.MESSAGING, 60_000)
        kind = service.add_interaction_event(
            at(0, 12, 1), AppCategory.MESSAGING, 20_000
        )
        assert kind == InteractionKind.MEANINGFUL_USE

    def test_upstream_kind_preserved(self, service):
        kind = service.add_interaction_event(
            at(0, 12),
            "social",
            400_000,
            kind=InteractionKind.NOTIFICATION_RESPONSE,
        )
        assert kind == InteractionKind.NOTIFICATION_RESPONSE

    def test_category_accepts_names_and_codes(self, service):
        service.add_interaction_event(at(0, 12), "productivity", 60_000)
        service.add_interaction_event(at(0, 13), 2, 60_000)

        categories = [e.app_category for e in service.store.snapshot_sorted()]
        assert categories == [AppCategory.PRODUCTIVITY, AppCategory.MESSAGING]

    def test_negative_duration_rejected(self, service):
        kind = service.add_interaction_event(at(0, 12), AppCategory.SOCIAL, -1)

        assert kind == InteractionKind.UNKNOWN
        assert len(service.store) == 0

    @pytest.mark.parametrize("duration_ms", [float("inf"), float("nan"), 1e20, "long"])
    def test_unrepresentable_duration_rejected(self, service, duration_ms):
        kind = service.add_interaction_event(at(0, 22), "social", duration_ms)

        assert kind == InteractionKind.UNKNOWN
        assert len(service.store) == 0

    def test_unknown_category_rejected(self, service):
        kind = service.add_interaction_event(at(0, 12), "banking", 60_000)

        assert kind == InteractionKind.UNKNOWN
        assert len(service.store) == 0

    def test_events_counted(self, service):
        _load(service, generate_night(at(0, 22), at(1, 6)))
        assert service.get_statistics().total_events_processed == 2


class TestDetection:
    def test_detects_night(self, service):
        _load(service, generate_night(at(0, 22), at(1, 6, 30)))

        result = service.detect_sleep(at(1, 6, 35))

        assert result.is_valid()
        assert result.bedtime == at(0, 22)
        assert result.wake_time == at(1, 6, 30)

    def test_empty_engine(self, service):
        result = service.detect_sleep(at(0, 12))

        assert result.bedtime is None
        assert result.wake_time is None

    def test_cache_hit_returns_same_result(self, service):
        _load(service, generate_night(at(0, 22), at(1, 6, 30)))

        first = service.detect_sleep(at(1, 7))
        second = service.detect_sleep(at(1, 7, 4))

        assert second is first
        metrics = service.get_performance_metrics()
        assert metrics["cache_hits"] == 1
        assert metrics["cache_misses"] == 1
        assert metrics["cache_hit_rate"] == pytest.approx(0.5)

    def test_cache_expires(self, service):
        _load(service, generate_night(at(0, 22), at(1, 6, 30)))

        first = service.detect_sleep(at(1, 7))
        later = service.detect_sleep(at(1, 7, 5))

        assert later is not first
        assert later == first

    def test_new_event_invalidates_cache(self, service):
        _load(service, generate_night(at(0, 22), at(1, 6, 30)))
        first = service.detect_sleep(at(1, 7))

        service.add_interaction_event(at(1, 6, 50), AppCategory.SOCIAL, 60_000)
        second = service.detect_sleep(at(1, 7, 1))

        assert second is not first

    def test_manual_confirmation_invalidates_and_upgrades(self, service):
        _load(service, generate_night(at(0, 22), at(1, 6, 30)))
        before = service.detect_sleep(at(1, 7))

        service.confirm_manual_sleep(at(0, 22, 10))
        after = service.detect_sleep(at(1, 7, 1))

        assert before.confidence == SleepConfidence.LOW
        assert after.is_manually_confirmed
        assert after.confidence == SleepConfidence.VERY_HIGH

    def test_preference_update_invalidates_cache(self, service):
        _load(service, generate_night(at(0, 22), at(1, 6, 30)))
        first = service.detect_sleep(at(1, 7))

        assert service.update_preferences({"track_interruptions": False})
        assert service.detect_sleep(at(1, 7, 1)) is not first

    def test_history(self, service):
        _load(service, generate_night(at(0, 22), at(1, 6)))
        _load(service, generate_night(at(1, 22), at(2, 6)))

        bedtimes = [r.bedtime for r in service.detect_sleep_history(at(2, 7))]

        assert at(0, 22) in bedtimes
        assert at(1, 22) in bedtimes

    def test_confidence_score_delegates(self, service):
        _load(service, generate_night(at(0, 22), at(1, 6, 30)))
        result = service.detect_sleep(at(1, 6, 35))

        assert service.calculate_confidence_score(result) == pytest.approx(0.384375)
        assert service.calculate_confidence_score(SleepDetectionResult()) == 0.0


class TestCurrentlyAsleep:
    def test_awake_without_events(self, service):
        assert not service.is_currently_asleep(at(0, 23))
        assert service.get_estimated_sleep_start(at(0, 23)) is None

    def test_asleep_after_minimum_gap(self, service):
        service.add_interaction_event(at(0, 22), AppCategory.SOCIAL, 120_000)

        assert not service.is_currently_asleep(at(1, 1, 59))
        assert service.is_currently_asleep(at(1, 2))
        assert service.get_estimated_sleep_start(at(1, 2)) == at(0, 22)

    def test_time_checks_do_not_wake(self, service):
        service.add_interaction_event(at(0, 22), AppCategory.SOCIAL, 120_000)
        service.add_interaction_event(at(1, 1), AppCategory.CLOCK_ALARM, 4_000)

        assert service.is_currently_asleep(at(1, 3))

    def test_future_events_ignored(self, service):
        service.add_interaction_event(at(0, 22), AppCategory.SOCIAL, 120_000)
        service.add_interaction_event(at(1, 7), AppCategory.SOCIAL, 120_000)

        assert service.is_currently_asleep(at(1, 3))

    def test_learned_schedule_vouches_early(self, service):
        for week in range(7):
            service.record_completed_sleep(_learned_session(at(7 * week, 23, 30)))
        service.add_interaction_event(at(49, 21, 30), AppCategory.SOCIAL, 120_000)

        assert service.is_currently_asleep(at(49, 23, 45))

    def test_learned_schedule_ignored_without_smart_detection(self):
        service = SleepTrackingService(UserPreferences(enable_smart_detection=False))
        for week in range(7):
            service.record_completed_sleep(_learned_session(at(7 * week, 23, 30)))
        service.add_interaction_event(at(49, 21, 30), AppCategory.SOCIAL, 120_000)

        assert not service.is_currently_asleep(at(49, 23, 45))


class TestPreferences:
    def test_mapping_update_merges(self, service):
        assert service.update_preferences({"target_sleep_hours": 7.5})

        assert service.preferences.target_sleep_hours == 7.5
        assert service.preferences.minimum_interaction_gap == timedelta(hours=4)

    def test_full_replacement(self, service):
        assert service.update_preferences(UserPreferences(confidence_threshold=0.5))
        assert service.preferences.confidence_threshold == 0.5

    @pytest.mark.parametrize(
        "update",
        [
            {"target_sleep_hours": 20},
            {"minimum_interaction_gap": timedelta(minutes=10)},
            {"nonsense": True},
        ],
    )
    def test_invalid_update_keeps_previous(self, service, update):
        before = service.preferences

        assert not service.update_preferences(update)
        assert service.preferences is before

    def test_threshold_affects_classification(self, service):
        service.update_preferences({"time_check_threshold": timedelta(seconds=10)})

        kind = service.add_interaction_event(at(0, 12), AppCategory.SOCIAL, 20_000)

        assert kind == InteractionKind.MEANINGFUL_USE


class TestPatternFeedback:
    def test_record_once(self, service):
        session = _learned_session(at(0, 23))

        assert service.record_completed_sleep(session)
        assert not service.record_completed_sleep(session)
        assert service.get_weekly_pattern().total_sessions == 1

    def test_invalid_session_not_learned(self, service):
        assert not service.record_completed_sleep(SleepDetectionResult(bedtime=at(0, 23)))
        assert service.get_weekly_pattern().total_sessions == 0

    def test_learning_invalidates_cache(self, service):
        _load(service, generate_night(at(0, 22), at(1, 6, 30)))
        first = service.detect_sleep(at(1, 7))

        service.record_completed_sleep(first)

        assert service.detect_sleep(at(1, 7, 1)) is not first

    def test_auto_learn(self):
        service = SleepTrackingService(auto_learn=True)
        _load(service, generate_night(at(0, 22), at(1, 6, 30)))

        service.detect_sleep(at(1, 7))
        service.detect_sleep(at(1, 7, 1))

        assert service.get_weekly_pattern().total_sessions == 1

    def test_shared_pattern_model(self, service):
        service.record_completed_sleep(_learned_session(at(0, 23)))

        other = SleepTrackingService(pattern_matcher=service.pattern_matcher)

        assert other.get_weekly_pattern().total_sessions == 1


class TestMaintenance:
    def test_clear_old_data(self, service):
        _load(service, generate_night(at(0, 22), at(1, 6)))
        _load(service, generate_night(at(5, 22), at(6, 6)))

        service.clear_old_data(at(3, 0))

        assert len(service.store) == 2
        assert service.store.snapshot_sorted()[0].timestamp == at(5, 22)

    def test_optimize_memory_keeps_last_week(self, service):
        _load(service, generate_night(at(0, 22), at(1, 6)))
        _load(service, generate_night(at(10, 22), at(11, 6)))
        service.detect_sleep(at(11, 7))

        service.optimize_memory()

        assert len(service.store) == 2
        metrics = service.get_performance_metrics()
        assert "detections" not in metrics
        assert metrics["buffered_events"] == 2
        assert service.get_statistics().average_confidence_score == 0.0

    def test_optimize_empty_engine(self, service):
        service.optimize_memory()
        assert len(service.store) == 0

    def test_capacity_bounds_buffer(self):
        service = SleepTrackingService(capacity=3)
        for hour in range(6):
            service.add_interaction_event(at(0, hour), AppCategory.SOCIAL, 60_000)

        timestamps = [e.timestamp for e in service.store.snapshot_sorted()]
        assert timestamps == [at(0, 3), at(0, 4), at(0, 5)]


class TestStatistics:
    def test_statistics_after_detection(self, service):
        _load(service, generate_night(at(0, 22), at(1, 6, 30)))
        service.detect_sleep(at(1, 6, 35))

        stats = service.get_statistics()

        assert stats.total_events_processed == 2
        assert stats.sleep_periods_detected == 1
        assert stats.average_confidence_score == pytest.approx(0.384375)
        assert stats.buffered_events == 2
        assert stats.memory_usage_bytes > 0
        assert stats.average_detection_time_us >= 0.0

    def test_recomputed_night_counted_once(self, service):
        _load(service, generate_night(at(0, 22), at(1, 6, 30)))
        for _ in range(3):
            service.cache.invalidate()
            service.detect_sleep(at(1, 6, 35))

        stats = service.get_statistics()

        assert service.monitor.count("detections") == 3
        assert stats.sleep_periods_detected == 1
        assert stats.average_confidence_score == pytest.approx(0.384375)

    def test_metrics_include_latency(self, service):
        service.add_interaction_event(at(0, 12), AppCategory.SOCIAL, 60_000)
        service.detect_sleep(at(0, 13))

        metrics = service.get_performance_metrics()

        assert metrics["add_event_samples"] == 1
        assert metrics["detect_sleep_samples"] == 1
        assert metrics["events_processed"] == 1
