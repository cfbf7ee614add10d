"""Interruption, quality and confidence scoring for detected sleep periods."""

from collections.abc import Sequence
from datetime import datetime

from doze.analysis.classifier import is_time_check
from doze.constants import SleepConfidence
from doze.constants import ScoringConstants as SC
from doze.models.events import InteractionEvent
from doze.models.result import SleepDetectionResult, SleepInterruption
from doze.utils.time import is_nighttime

__all__ = [
    "calculate_confidence_score",
    "calculate_quality_score",
    "collect_interruptions",
    "confidence_from_score",
    "has_manual_confirmation",
]


def collect_interruptions(
    events: Sequence[InteractionEvent], bedtime: datetime, wake_time: datetime
) -> list[SleepInterruption]:
    """
    Find the brief wake-ups inside a sleep interval.

    Args:
        events: Events sorted by timestamp
        bedtime: Interval start (exclusive)
        wake_time: Interval end (exclusive)

    Returns:
        Interruptions in chronological order
    """
    interruptions = []
    for event in events:
        if not bedtime < event.timestamp < wake_time:
            continue
        if event.is_manual_confirmation:
            continue
        if event.duration < SC.INTERRUPTION_MAX or is_time_check(event):
            interruptions.append(SleepInterruption.from_event(event))
    return interruptions


def calculate_quality_score(
    interruptions: Sequence[SleepInterruption], duration_hours: float
) -> float:
    """
    Score sleep quality from its interruptions.

    Each interruption costs a tenth of its impact, and every interruption
    beyond the first three costs a flat penalty on top.

    Returns:
        Quality in [0, 1]; 0 for a non-positive duration
    """
    if duration_hours <= 0:
        return 0.0

    quality = 1.0
    for interruption in interruptions:
        quality -= interruption.impact_score * SC.QUALITY_IMPACT_FACTOR

    excess = len(interruptions) - SC.FREE_INTERRUPTIONS
    if excess > 0:
        quality -= excess * SC.EXCESS_INTERRUPTION_PENALTY

    return max(0.0, min(1.0, quality))


def calculate_confidence_score(
    result: SleepDetectionResult, target_sleep_hours: float
) -> float:
    """
    Weighted confidence score of a detection result.

    Args:
        result: Result with quality and pattern scores filled in
        target_sleep_hours: User's preferred sleep duration

    Returns:
        Score in [0, 1]; 0 for results that are not valid
    """
    if not result.is_valid():
        return 0.0

    score = 0.0
    if result.is_manually_confirmed:
        score += SC.MANUAL_WEIGHT

    if target_sleep_hours > 0:
        deviation = abs(result.duration_hours - target_sleep_hours) / target_sleep_hours
        score += SC.DURATION_WEIGHT * max(0.0, 1.0 - deviation)

    score += SC.PATTERN_WEIGHT * _clamp(result.pattern_match_score)
    score += SC.QUALITY_WEIGHT * _clamp(result.quality_score)

    if result.bedtime is not None and is_nighttime(result.bedtime):
        score += SC.NIGHTTIME_BONUS

    return _clamp(score)


def confidence_from_score(score: float) -> SleepConfidence:
    """Map a confidence score onto the ordinal confidence bands."""
    for lower_bound, confidence in SC.CONFIDENCE_BANDS:
        if score >= lower_bound:
            return confidence
    return SleepConfidence.VERY_LOW


def has_manual_confirmation(
    events: Sequence[InteractionEvent], bedtime: datetime
) -> bool:
    """True if a manual sleep confirmation lies within 30 minutes of bedtime."""
    window = SC.MANUAL_CONFIRMATION_WINDOW
    return any(
        event.is_manual_confirmation and abs(event.timestamp - bedtime) <= window
        for event in events
    )


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))
