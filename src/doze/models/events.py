"""Pydantic models for interaction events and quiet periods."""

from datetime import datetime, timedelta

from pydantic import BaseModel, ConfigDict, Field, model_validator

from doze.constants import AppCategory, InteractionKind
from doze.constants import GapDetectionConstants as GDC
from doze.utils.time import timedelta_ms


class InteractionEvent(BaseModel):
    """
    One observed phone interaction.

    Attributes:
        timestamp: When the interaction started
        duration: How long the screen/app was in use (non-negative)
        kind: Semantic classification (UNKNOWN until classified)
        app_category: Category of the foreground app
        app_hash: Opaque 16-bit identifier of the app package
        session_id: Caller-assigned usage session identifier
        interaction_count_in_session: Running interaction count in the session
    """

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(description="Interaction start")
    duration: timedelta = Field(
        default=timedelta(0), description="Interaction duration"
    )
    kind: InteractionKind = Field(
        default=InteractionKind.UNKNOWN, description="Interaction kind"
    )
    app_category: AppCategory = Field(
        default=AppCategory.UNKNOWN, description="Foreground app category"
    )
    app_hash: int = Field(default=0, ge=0, le=0xFFFF, description="App identifier")
    session_id: int = Field(default=0, ge=0, description="Usage session ID")
    interaction_count_in_session: int = Field(
        default=0, ge=0, description="Interactions so far in session"
    )

    @model_validator(mode="after")
    def _check_duration(self) -> "InteractionEvent":
        if self.duration < timedelta(0):
            raise ValueError(f"duration must be non-negative, got {self.duration}")
        return self

    @property
    def duration_ms(self) -> float:
        return timedelta_ms(self.duration)

    @property
    def is_manual_confirmation(self) -> bool:
        return self.kind == InteractionKind.MANUAL_SLEEP_CONFIRMATION


class TimeGap(BaseModel):
    """
    A quiet interval with no meaningful phone use.

    Runs between two meaningful interactions, or from the last meaningful
    interaction to "now" when is_open_ended is set.
    """

    model_config = ConfigDict(frozen=True)

    start: datetime = Field(description="Last meaningful interaction before gap")
    end: datetime = Field(description="First meaningful interaction after gap")
    brief_interaction_count: int = Field(
        default=0, ge=0, description="Time checks inside the gap"
    )
    is_open_ended: bool = Field(
        default=False, description="Gap extends to the analysis time"
    )

    @model_validator(mode="after")
    def _check_order(self) -> "TimeGap":
        if self.end <= self.start:
            raise ValueError(f"gap end {self.end} must be after start {self.start}")
        return self

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def duration_hours(self) -> float:
        return self.duration.total_seconds() / 3600.0

    @property
    def contains_brief_interactions(self) -> bool:
        return self.brief_interaction_count > 0

    def is_likely_sleep(
        self,
        min_duration: timedelta,
        max_brief_interactions: int = GDC.MAX_BRIEF_INTERACTIONS,
    ) -> bool:
        """
        Check whether the gap is long and quiet enough to be sleep.

        Too many time checks during a quiet window signal wakefulness.
        """
        return (
            self.duration >= min_duration
            and self.brief_interaction_count < max_brief_interactions
        )
