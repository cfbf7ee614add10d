"""
Sleep detection pipeline.

Turns a sorted event snapshot into a SleepDetectionResult:

    NoData -> GapsFound -> CandidateSelected -> IntervalAnalyzed

Caching and state ownership live in SleepTrackingService; this module is a
pure function of (events, preferences, pattern model, now).
"""

import logging

from collections.abc import Sequence
from datetime import datetime

from doze.analysis.gap_detector import GapDetector
from doze.analysis.pattern_matcher import PatternMatcher
from doze.analysis.scoring import (
    calculate_confidence_score,
    calculate_quality_score,
    collect_interruptions,
    confidence_from_score,
    has_manual_confirmation,
)
from doze.constants import CandidateScoringConstants as CSC
from doze.constants import GapDetectionConstants as GDC
from doze.constants import SleepConfidence
from doze.models.events import InteractionEvent, TimeGap
from doze.models.preferences import UserPreferences
from doze.models.result import SleepDetectionResult
from doze.utils.time import circular_minutes_diff, day_of_week, minutes_since_midnight

logger = logging.getLogger(__name__)

__all__ = ["SleepDetector"]


class SleepDetector:
    """
    Selects the most plausible sleep gap and scores it.

    Example:
        >>> detector = SleepDetector(PatternMatcher())
        >>> result = detector.detect(events, preferences, now)
        >>> if result.is_valid():
        ...     print(f"Slept {result.duration_hours:.1f}h")
    """

    def __init__(self, pattern_matcher: PatternMatcher):
        """
        Initialize the detector.

        Args:
            pattern_matcher: Weekly schedule model used for scoring
        """
        self.pattern_matcher = pattern_matcher

    def detect(
        self,
        events: Sequence[InteractionEvent],
        preferences: UserPreferences,
        now: datetime,
    ) -> SleepDetectionResult:
        """
        Run one detection over a sorted event snapshot.

        Args:
            events: Events sorted by timestamp
            preferences: Preferences in effect for this call
            now: Analysis time, closes the trailing gap

        Returns:
            Completed, ongoing ("bedtime only") or empty result
        """
        # One event is enough: now closes the trailing gap
        if not events:
            return SleepDetectionResult()

        candidates = self.find_candidate_gaps(events, preferences, now)
        if not candidates:
            logger.debug("No likely sleep gap found")
            return SleepDetectionResult()

        gap = self.select_best_gap(candidates, preferences)
        return self.analyze_gap(gap, events, preferences)

    def detect_all(
        self,
        events: Sequence[InteractionEvent],
        preferences: UserPreferences,
        now: datetime | None = None,
    ) -> list[SleepDetectionResult]:
        """Results for every completed likely-sleep gap, oldest first."""
        candidates = self.find_candidate_gaps(events, preferences, now)
        return [
            self.analyze_gap(gap, events, preferences)
            for gap in candidates
            if not gap.is_open_ended
        ]

    def find_candidate_gaps(
        self,
        events: Sequence[InteractionEvent],
        preferences: UserPreferences,
        now: datetime | None,
    ) -> list[TimeGap]:
        gap_detector = GapDetector(
            minimum_gap=preferences.minimum_interaction_gap,
            max_brief_interactions=GDC.MAX_BRIEF_INTERACTIONS,
        )
        gaps = gap_detector.detect(events, now=now)
        return gap_detector.likely_sleep_gaps(gaps)

    def select_best_gap(
        self, candidates: Sequence[TimeGap], preferences: UserPreferences
    ) -> TimeGap:
        """
        Pick the gap most likely to be the night's sleep.

        With smart detection the highest-scoring gap wins, the earliest one
        on ties. Without it, the most recent gap is taken as is.
        """
        if not preferences.enable_smart_detection:
            return candidates[-1]

        best = candidates[0]
        best_score = self.score_gap(best, preferences)
        for gap in candidates[1:]:
            score = self.score_gap(gap, preferences)
            if score > best_score:
                best, best_score = gap, score
        logger.debug(f"Selected gap {best.start} -> {best.end} (score={best_score:.3f})")
        return best

    def score_gap(self, gap: TimeGap, preferences: UserPreferences) -> float:
        """
        Weighted plausibility of a gap as a night's sleep.

        Args:
            gap: Candidate gap
            preferences: Preferences in effect

        Returns:
            Score between 0 and the sum of the component weights
        """
        hours = gap.duration_hours
        day = day_of_week(gap.start)
        day_confidence = self.pattern_matcher.get_pattern_confidence(day)

        score = self._duration_appropriateness(hours)

        target = preferences.target_sleep_hours
        score += CSC.TARGET_MATCH_WEIGHT * max(0.0, 1.0 - abs(hours - target) / target)

        if day_confidence > 0:
            expected = self.pattern_matcher.get_expected_bedtime(day)
        else:
            expected = preferences.bedtime_for_day(day)
        timing_diff = circular_minutes_diff(minutes_since_midnight(gap.start), expected)
        score += CSC.TIMING_WEIGHT * max(
            0.0, 1.0 - timing_diff / CSC.TIMING_TOLERANCE_MINUTES
        )

        quietness = 1.0 - gap.brief_interaction_count / GDC.MAX_BRIEF_INTERACTIONS
        score += CSC.ACTIVITY_WEIGHT * max(0.0, quietness)

        score += CSC.DAY_OF_WEEK_WEIGHT * day_confidence
        return score

    def analyze_gap(
        self,
        gap: TimeGap,
        events: Sequence[InteractionEvent],
        preferences: UserPreferences,
    ) -> SleepDetectionResult:
        """Build the scored result for a chosen gap."""
        bedtime = gap.start
        is_manual = has_manual_confirmation(events, bedtime)

        if gap.is_open_ended:
            # Sleep still in progress: no wake time to score against yet
            return SleepDetectionResult(
                bedtime=bedtime,
                confidence=SleepConfidence.VERY_HIGH if is_manual else SleepConfidence.LOW,
                is_manually_confirmed=is_manual,
            )

        wake_time = gap.end
        hours = gap.duration_hours

        if preferences.track_interruptions:
            interruptions = collect_interruptions(events, bedtime, wake_time)
        else:
            interruptions = []

        quality = calculate_quality_score(interruptions, hours)

        pattern_score = 0.0
        if preferences.enable_smart_detection:
            pattern_score = self.pattern_matcher.calculate_pattern_match(
                bedtime, wake_time
            )

        result = SleepDetectionResult(
            bedtime=bedtime,
            wake_time=wake_time,
            duration_hours=hours,
            interruptions=interruptions,
            quality_score=quality,
            is_manually_confirmed=is_manual,
            pattern_match_score=pattern_score,
        )

        score = calculate_confidence_score(result, preferences.target_sleep_hours)
        confidence = confidence_from_score(score)
        if is_manual:
            confidence = SleepConfidence.VERY_HIGH

        logger.debug(
            f"Sleep {bedtime} -> {wake_time}: {hours:.2f}h, "
            f"{len(interruptions)} interruptions, score={score:.3f}"
        )
        return result.model_copy(update={"confidence": confidence})

    @staticmethod
    def _duration_appropriateness(hours: float) -> float:
        if hours < CSC.REASONABLE_MIN_HOURS:
            return CSC.DURATION_WEIGHT * max(0.0, hours / CSC.REASONABLE_MIN_HOURS)
        if hours > CSC.REASONABLE_MAX_HOURS:
            overshoot = (hours - CSC.REASONABLE_MAX_HOURS) / CSC.REASONABLE_MAX_HOURS
            return CSC.DURATION_WEIGHT * max(0.0, 1.0 - overshoot)
        return CSC.DURATION_WEIGHT
