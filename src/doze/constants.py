"""
Constants and enumerations for interaction-based sleep detection.

Thresholds are grouped per component. Tunable ones are also exposed through
UserPreferences; the values here are their defaults.
"""

from datetime import timedelta
from enum import IntEnum
from pathlib import Path

# ============================================================================
# Interaction Types
# ============================================================================


class InteractionKind(IntEnum):
    """Semantic kind of a phone interaction."""

    UNKNOWN = 0
    TIME_CHECK = 1  # Glance at clock/notifications
    MEANINGFUL_USE = 2  # Active app usage
    NOTIFICATION_RESPONSE = 3  # Replying to a notification
    EXTENDED_USE = 4  # Long session (5+ minutes)
    MANUAL_SLEEP_CONFIRMATION = 5  # "Going to sleep" button

    @property
    def label(self) -> str:
        return self.name.lower()


class AppCategory(IntEnum):
    """App category of the foreground app during an interaction."""

    UNKNOWN = 0
    SOCIAL = 1  # Facebook, Instagram, Twitter
    MESSAGING = 2  # WhatsApp, Telegram, SMS
    ENTERTAINMENT = 3  # YouTube, Netflix, games
    PRODUCTIVITY = 4  # Email, calendar, notes
    CLOCK_ALARM = 5  # Clock, alarm, weather
    SYSTEM = 6  # Settings, launcher

    @property
    def label(self) -> str:
        return self.name.lower()


class SleepConfidence(IntEnum):
    """Ordinal trust level of a detection result."""

    VERY_LOW = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    VERY_HIGH = 4

    @property
    def label(self) -> str:
        return CONFIDENCE_LABELS[self]


CONFIDENCE_LABELS = {
    SleepConfidence.VERY_LOW: "Very Low",
    SleepConfidence.LOW: "Low",
    SleepConfidence.MEDIUM: "Medium",
    SleepConfidence.HIGH: "High",
    SleepConfidence.VERY_HIGH: "Very High",
}


def parse_app_category(value: str | int) -> AppCategory:
    """
    Resolve an app category from its name or numeric code.

    Args:
        value: Category name (case-insensitive, e.g. "social") or integer code

    Returns:
        Matching AppCategory

    Raises:
        ValueError: If the value does not name a category
    """
    if isinstance(value, int):
        return AppCategory(value)
    key = value.strip().upper().replace("-", "_").replace("/", "_")
    if key.isdigit():
        return AppCategory(int(key))
    if key == "CLOCK":
        key = "CLOCK_ALARM"
    try:
        return AppCategory[key]
    except KeyError:
        raise ValueError(
            f"Unknown app category: {value!r}. "
            f"Available: {[c.label for c in AppCategory]}"
        ) from None


def parse_interaction_kind(value: str | int) -> InteractionKind:
    """Resolve an interaction kind from its name or numeric code."""
    if isinstance(value, int):
        return InteractionKind(value)
    key = value.strip().upper().replace("-", "_")
    if key.isdigit():
        return InteractionKind(int(key))
    try:
        return InteractionKind[key]
    except KeyError:
        raise ValueError(
            f"Unknown interaction kind: {value!r}. "
            f"Available: {[k.label for k in InteractionKind]}"
        ) from None


# ============================================================================
# Component Thresholds
# ============================================================================


class ClassifierConstants:
    """Constants for interaction classification (classifier.py)."""

    TIME_CHECK_MAX = timedelta(seconds=10)
    CONTEXT_BAND_MAX = timedelta(seconds=30)
    MEANINGFUL_MAX = timedelta(minutes=5)

    CONTINUATION_WINDOW = timedelta(minutes=2)

    # Predicate thresholds
    BRIEF_CHECK_MAX = timedelta(seconds=15)
    CLOCK_CHECK_MAX = timedelta(seconds=30)
    MEANINGFUL_MIN = timedelta(seconds=30)
    SLEEP_RELATED_CLOCK_MAX = timedelta(seconds=10)


class GapDetectionConstants:
    """Constants for quiet-period detection (gap_detector.py)."""

    MINIMUM_GAP = timedelta(hours=4)
    MINIMUM_GAP_FLOOR = timedelta(hours=1)
    MAX_BRIEF_INTERACTIONS = 5


class PatternMatchConstants:
    """Constants for the weekly pattern model (pattern_matcher.py)."""

    LEARNING_RATE = 0.1
    CONFIDENCE_STEP = 0.05
    MIN_SESSIONS_FOR_REGULARITY = 8
    REGULARITY_TOLERANCE_MINUTES = 180.0

    DEVIATION_TOLERANCE_MINUTES = 120.0
    DEFAULT_BEDTIME_MINUTES = 1410  # 23:30
    DEFAULT_WAKE_MINUTES = 450  # 07:30
    DEFAULT_SLEEP_HOURS = 8.0

    SLEEP_TIME_MIN_ELAPSED = timedelta(hours=2)
    SLEEP_TIME_WINDOW_MINUTES = 180
    SLEEP_TIME_MIN_CONFIDENCE = 0.3


class CandidateScoringConstants:
    """Weights for choosing the best sleep gap (detector.py)."""

    DURATION_WEIGHT = 0.3
    TARGET_MATCH_WEIGHT = 0.2
    TIMING_WEIGHT = 0.2
    ACTIVITY_WEIGHT = 0.1
    DAY_OF_WEEK_WEIGHT = 0.05

    REASONABLE_MIN_HOURS = 4.0
    REASONABLE_MAX_HOURS = 12.0
    TIMING_TOLERANCE_MINUTES = 360.0


class ScoringConstants:
    """Constants for interruption, quality and confidence scoring (scoring.py)."""

    INTERRUPTION_MAX = timedelta(seconds=120)
    BRIEF_INTERRUPTION_MAX = timedelta(seconds=30)
    BRIEF_IMPACT = 0.1
    IMPACT_SATURATION = timedelta(minutes=10)

    QUALITY_IMPACT_FACTOR = 0.1
    FREE_INTERRUPTIONS = 3
    EXCESS_INTERRUPTION_PENALTY = 0.05

    MANUAL_WEIGHT = 0.5
    DURATION_WEIGHT = 0.2
    PATTERN_WEIGHT = 0.15
    QUALITY_WEIGHT = 0.1
    NIGHTTIME_BONUS = 0.05

    # Lower bounds of each confidence band, highest first
    CONFIDENCE_BANDS = (
        (0.9, SleepConfidence.VERY_HIGH),
        (0.75, SleepConfidence.HIGH),
        (0.5, SleepConfidence.MEDIUM),
        (0.3, SleepConfidence.LOW),
    )

    MANUAL_CONFIRMATION_WINDOW = timedelta(minutes=30)

    MIN_VALID_HOURS = 1.0
    MAX_VALID_HOURS = 24.0

    NIGHT_START_MINUTES = 22 * 60
    NIGHT_END_MINUTES = 6 * 60


class EngineConstants:
    """Constants for the tracking service (service.py)."""

    MAX_EVENTS = 10_000
    CACHE_VALIDITY = timedelta(minutes=5)
    OPTIMIZE_RETENTION = timedelta(days=7)
    DATA_RETENTION = timedelta(days=30)


# ============================================================================
# Default Settings
# ============================================================================

DEFAULT_CONFIG_DIR = Path.home() / ".doze"

# Logging configuration
DEFAULT_LOG_DIR = DEFAULT_CONFIG_DIR / "logs"
DEFAULT_LOG_FILE = "doze.log"
DEFAULT_LOG_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
DEFAULT_LOG_BACKUP_COUNT = 5

# Time calculations
MINUTES_PER_DAY = 24 * 60
SECONDS_PER_HOUR = 3600
MILLISECONDS_PER_SECOND = 1000
