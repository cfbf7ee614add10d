"""User preference model."""

from datetime import timedelta

from pydantic import BaseModel, ConfigDict, Field, field_validator

from doze.constants import ClassifierConstants as CC
from doze.constants import GapDetectionConstants as GDC
from doze.constants import MINUTES_PER_DAY

WEEKEND_DAYS = frozenset({0, 6})


class UserPreferences(BaseModel):
    """
    Personalization knobs for sleep detection.

    Immutable: the engine swaps the whole object on update so concurrent
    readers see either the old or the new preferences, never a mix.
    Clock times are minutes since midnight; 1440 means midnight at the end
    of the day.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    target_sleep_hours: float = Field(
        default=8.0, ge=1.0, le=12.0, description="Desired sleep duration (hours)"
    )
    target_bedtime: int = Field(
        default=1410, ge=0, le=MINUTES_PER_DAY, description="Preferred bedtime"
    )
    target_wake_time: int = Field(
        default=450, ge=0, le=MINUTES_PER_DAY, description="Preferred wake time"
    )
    weekday_bedtime: int = Field(
        default=1410, ge=0, le=MINUTES_PER_DAY, description="Bedtime Mon-Fri"
    )
    weekend_bedtime: int = Field(
        default=1440, ge=0, le=MINUTES_PER_DAY, description="Bedtime Sat/Sun"
    )
    minimum_interaction_gap: timedelta = Field(
        default=GDC.MINIMUM_GAP, description="Minimum quiet period to count as sleep"
    )
    time_check_threshold: timedelta = Field(
        default=CC.CONTEXT_BAND_MAX,
        description="Interactions shorter than this may be time checks",
    )
    confidence_threshold: float = Field(
        default=0.7, ge=0.1, le=1.0, description="Minimum confidence to auto-accept"
    )
    enable_smart_detection: bool = Field(
        default=True, description="Use weighted gap scoring and weekly patterns"
    )
    track_interruptions: bool = Field(
        default=True, description="Record mid-sleep activity"
    )

    @field_validator("minimum_interaction_gap")
    @classmethod
    def _check_gap(cls, value: timedelta) -> timedelta:
        if value < GDC.MINIMUM_GAP_FLOOR:
            raise ValueError(
                f"minimum_interaction_gap must be at least {GDC.MINIMUM_GAP_FLOOR}"
            )
        return value

    @field_validator("time_check_threshold")
    @classmethod
    def _check_time_check(cls, value: timedelta) -> timedelta:
        if not CC.TIME_CHECK_MAX <= value <= CC.MEANINGFUL_MAX:
            raise ValueError(
                f"time_check_threshold must be between {CC.TIME_CHECK_MAX} "
                f"and {CC.MEANINGFUL_MAX}"
            )
        return value

    def bedtime_for_day(self, day_of_week: int) -> int:
        """
        Preferred bedtime for a weekday.

        Args:
            day_of_week: 0=Sunday ... 6=Saturday

        Returns:
            Bedtime in minutes since midnight
        """
        if day_of_week in WEEKEND_DAYS:
            return self.weekend_bedtime
        return self.weekday_bedtime

    def is_likely_sleep_gap(self, gap: timedelta) -> bool:
        return gap >= self.minimum_interaction_gap

    def is_likely_time_check(self, duration: timedelta) -> bool:
        return duration <= self.time_check_threshold
