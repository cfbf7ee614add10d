"""Pydantic models for sleep detection output."""

from datetime import datetime, timedelta

from pydantic import BaseModel, ConfigDict, Field

from doze.constants import AppCategory, InteractionKind, SleepConfidence
from doze.constants import ScoringConstants as SC
from doze.models.events import InteractionEvent
from doze.utils.time import timedelta_ms


class SleepInterruption(BaseModel):
    """
    A brief awakening inside a detected sleep period.

    Attributes:
        timestamp: When the interruption happened
        duration: How long the phone was in use
        cause: Interaction kind that caused it
        app_category: Foreground app category
        is_brief_check: True for interruptions under 30 seconds
        impact_score: Impact on sleep quality (0-1)
    """

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(description="Interruption time")
    duration: timedelta = Field(description="Interruption duration")
    cause: InteractionKind = Field(description="Interaction kind")
    app_category: AppCategory = Field(
        default=AppCategory.UNKNOWN, description="App category"
    )
    is_brief_check: bool = Field(description="Shorter than 30 seconds")
    impact_score: float = Field(ge=0, le=1, description="Quality impact (0-1)")

    @classmethod
    def from_event(cls, event: InteractionEvent) -> "SleepInterruption":
        """Build an interruption from an event inside a sleep interval."""
        is_brief = event.duration < SC.BRIEF_INTERRUPTION_MAX
        if is_brief:
            impact = SC.BRIEF_IMPACT
        else:
            impact = min(
                1.0, event.duration_ms / timedelta_ms(SC.IMPACT_SATURATION)
            )
        return cls(
            timestamp=event.timestamp,
            duration=event.duration,
            cause=event.kind,
            app_category=event.app_category,
            is_brief_check=is_brief,
            impact_score=impact,
        )


class SleepDetectionResult(BaseModel):
    """
    Output of one sleep detection call.

    Which optional fields are set tells the caller what was found:
    both times present is a completed sleep period, bedtime alone is sleep
    still in progress, neither means no sleep was detected.
    """

    model_config = ConfigDict(frozen=True)

    bedtime: datetime | None = Field(default=None, description="Sleep start")
    wake_time: datetime | None = Field(default=None, description="Sleep end")
    duration_hours: float = Field(default=0.0, ge=0, description="Sleep hours")
    confidence: SleepConfidence = Field(
        default=SleepConfidence.LOW, description="Detection confidence"
    )
    interruptions: list[SleepInterruption] = Field(
        default_factory=list, description="Mid-sleep wake-ups"
    )
    quality_score: float = Field(default=0.0, ge=0, le=1, description="Quality (0-1)")
    is_manually_confirmed: bool = Field(
        default=False, description="User confirmed going to sleep"
    )
    pattern_match_score: float = Field(
        default=0.0, ge=0, le=1, description="Similarity to weekly pattern (0-1)"
    )

    def is_valid(self) -> bool:
        """Both times detected with a plausible duration (1-24 hours)."""
        return (
            self.bedtime is not None
            and self.wake_time is not None
            and SC.MIN_VALID_HOURS <= self.duration_hours <= SC.MAX_VALID_HOURS
        )

    def is_ongoing(self) -> bool:
        return self.bedtime is not None and self.wake_time is None

    @property
    def confidence_label(self) -> str:
        return self.confidence.label

    @property
    def total_interruption_time(self) -> timedelta:
        return sum((i.duration for i in self.interruptions), timedelta(0))

    def sleep_efficiency(self) -> float:
        """
        Fraction of time in bed not spent on interruptions.

        Returns:
            Efficiency in [0, 1]; 0 when the result is not valid
        """
        if not self.is_valid():
            return 0.0
        assert self.bedtime is not None and self.wake_time is not None

        time_in_bed = self.wake_time - self.bedtime
        if time_in_bed <= timedelta(0):
            return 0.0

        asleep = time_in_bed - self.total_interruption_time
        return max(0.0, min(1.0, asleep / time_in_bed))
