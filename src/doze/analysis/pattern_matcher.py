"""
Personalized weekly sleep-schedule model.

Keeps an exponentially smoothed bedtime and wake time per weekday, a global
average sleep duration and a schedule regularity score, and scores how well
a candidate sleep period matches that history.
"""

import logging
import threading

from datetime import datetime

import numpy as np

from doze.constants import MINUTES_PER_DAY, SleepConfidence
from doze.constants import PatternMatchConstants as PMC
from doze.models.result import SleepDetectionResult
from doze.models.statistics import WeeklyPatternSnapshot
from doze.utils.time import (
    circular_minutes_diff,
    day_of_week,
    duration_hours,
    minutes_since_midnight,
    unwrap_minutes,
)

logger = logging.getLogger(__name__)

__all__ = ["PatternMatcher"]

DAYS_PER_WEEK = 7


class PatternMatcher:
    """
    Learns the user's weekly sleep schedule from confirmed sessions.

    Days are indexed 0 (Sunday) to 6 (Saturday). Clock times are minutes
    since midnight and compared on a 24-hour circle.

    Example:
        >>> matcher = PatternMatcher()
        >>> matcher.update_patterns(last_night)
        >>> score = matcher.calculate_pattern_match(bedtime, wake_time)
    """

    def __init__(
        self,
        learning_rate: float = PMC.LEARNING_RATE,
        default_bedtime: float = PMC.DEFAULT_BEDTIME_MINUTES,
        default_wake_time: float = PMC.DEFAULT_WAKE_MINUTES,
        default_sleep_hours: float = PMC.DEFAULT_SLEEP_HOURS,
    ):
        """
        Initialize an empty model.

        Args:
            learning_rate: EMA weight of each new observation
            default_bedtime: Expected bedtime for days with no history
            default_wake_time: Expected wake time for days with no history
            default_sleep_hours: Average duration before the first session
        """
        self.learning_rate = learning_rate
        self._default_bedtime = float(default_bedtime)
        self._default_wake_time = float(default_wake_time)
        self._default_sleep_hours = float(default_sleep_hours)
        self._lock = threading.RLock()
        self.reset()

    def reset(self) -> None:
        """Forget everything learned."""
        with self._lock:
            self._bedtimes = np.full(DAYS_PER_WEEK, self._default_bedtime)
            self._wake_times = np.full(DAYS_PER_WEEK, self._default_wake_time)
            self._confidence = np.zeros(DAYS_PER_WEEK)
            self._seeded = np.zeros(DAYS_PER_WEEK, dtype=bool)
            self._average_duration = self._default_sleep_hours
            self._regularity = 0.0
            self._total_sessions = 0

    def update_patterns(self, session: SleepDetectionResult) -> bool:
        """
        Learn from one completed sleep session.

        Args:
            session: Detection result; ignored unless valid

        Returns:
            True if the model was updated
        """
        if not session.is_valid():
            return False
        assert session.bedtime is not None and session.wake_time is not None

        day = day_of_week(session.bedtime)
        bedtime = minutes_since_midnight(session.bedtime)
        wake_time = minutes_since_midnight(session.wake_time)
        hours = session.duration_hours

        with self._lock:
            if self._seeded[day]:
                self._bedtimes[day] = self._smooth_clock(self._bedtimes[day], bedtime)
                self._wake_times[day] = self._smooth_clock(
                    self._wake_times[day], wake_time
                )
            else:
                self._bedtimes[day] = bedtime
                self._wake_times[day] = wake_time
                self._seeded[day] = True

            if self._total_sessions == 0:
                self._average_duration = hours
            else:
                self._average_duration = self._smooth(self._average_duration, hours)

            if session.confidence >= SleepConfidence.MEDIUM:
                self._confidence[day] = min(
                    1.0, self._confidence[day] + PMC.CONFIDENCE_STEP
                )

            self._total_sessions += 1
            if self._total_sessions >= PMC.MIN_SESSIONS_FOR_REGULARITY:
                self._regularity = self._calculate_regularity()

        logger.debug(
            f"Learned session for day {day}: bedtime={bedtime}min, "
            f"wake={wake_time}min, {hours:.2f}h"
        )
        return True

    def calculate_pattern_match(self, bedtime: datetime, wake_time: datetime) -> float:
        """
        Score how well a sleep period matches the learned schedule.

        Bedtime and wake time deviations are weighted by the weekday's
        pattern confidence, so an unlearned day contributes nothing for them.

        Args:
            bedtime: Sleep start
            wake_time: Sleep end

        Returns:
            Mean of the bedtime, wake time and duration scores (0-1)
        """
        day = day_of_week(bedtime)
        hours = duration_hours(bedtime, wake_time)

        with self._lock:
            expected_bed = float(self._bedtimes[day])
            expected_wake = float(self._wake_times[day])
            confidence = float(self._confidence[day])
            average = self._average_duration

        bed_diff = circular_minutes_diff(minutes_since_midnight(bedtime), expected_bed)
        wake_diff = circular_minutes_diff(
            minutes_since_midnight(wake_time), expected_wake
        )
        bedtime_score = _deviation_score(bed_diff) * confidence
        wake_score = _deviation_score(wake_diff) * confidence

        if average > 0:
            duration_score = max(0.0, 1.0 - abs(hours - average) / average)
        else:
            duration_score = 0.0

        score = (bedtime_score + wake_score + duration_score) / 3.0
        return max(0.0, min(1.0, score))

    def is_likely_sleep_time(self, now: datetime, last_interaction: datetime) -> bool:
        """
        Check whether the schedule says the user is probably asleep.

        Requires enough quiet time, a clock time near the expected bedtime
        and a learned pattern for today.
        """
        if now - last_interaction < PMC.SLEEP_TIME_MIN_ELAPSED:
            return False

        day = day_of_week(now)
        with self._lock:
            expected = float(self._bedtimes[day])
            confidence = float(self._confidence[day])

        near_bedtime = (
            circular_minutes_diff(minutes_since_midnight(now), expected)
            <= PMC.SLEEP_TIME_WINDOW_MINUTES
        )
        return near_bedtime and confidence > PMC.SLEEP_TIME_MIN_CONFIDENCE

    def get_expected_bedtime(self, day: int) -> float:
        with self._lock:
            return float(self._bedtimes[day])

    def get_expected_wake_time(self, day: int) -> float:
        with self._lock:
            return float(self._wake_times[day])

    def get_pattern_confidence(self, day: int) -> float:
        with self._lock:
            return float(self._confidence[day])

    @property
    def average_sleep_duration(self) -> float:
        with self._lock:
            return self._average_duration

    @property
    def schedule_regularity(self) -> float:
        with self._lock:
            return self._regularity

    @property
    def total_sessions(self) -> int:
        with self._lock:
            return self._total_sessions

    def snapshot(self) -> WeeklyPatternSnapshot:
        """Copy of the current model."""
        with self._lock:
            return WeeklyPatternSnapshot(
                typical_bedtimes=self._bedtimes.tolist(),
                typical_wake_times=self._wake_times.tolist(),
                pattern_confidence=self._confidence.tolist(),
                average_sleep_duration=self._average_duration,
                schedule_regularity=self._regularity,
                total_sessions=self._total_sessions,
            )

    def _smooth(self, old: float, observed: float) -> float:
        return old * (1.0 - self.learning_rate) + observed * self.learning_rate

    def _smooth_clock(self, old: float, observed: float) -> float:
        # Average on the unwrapped value so 23:50 and 00:10 meet near midnight
        smoothed = self._smooth(old, unwrap_minutes(observed, old))
        return smoothed % MINUTES_PER_DAY

    def _calculate_regularity(self) -> float:
        reference = float(self._bedtimes[0])
        unwrapped = np.array(
            [unwrap_minutes(float(value), reference) for value in self._bedtimes]
        )
        spread = float(np.std(unwrapped))
        return max(0.0, 1.0 - spread / PMC.REGULARITY_TOLERANCE_MINUTES)


def _deviation_score(diff_minutes: float) -> float:
    return max(0.0, 1.0 - diff_minutes / PMC.DEVIATION_TOLERANCE_MINUTES)
