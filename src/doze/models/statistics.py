"""Pydantic models for learned patterns and engine statistics."""

from pydantic import BaseModel, ConfigDict, Field


class WeeklyPatternSnapshot(BaseModel):
    """Read-only copy of the weekly sleep-schedule model."""

    model_config = ConfigDict(frozen=True)

    typical_bedtimes: list[float] = Field(
        description="Smoothed bedtime per weekday (minutes, Sunday first)"
    )
    typical_wake_times: list[float] = Field(
        description="Smoothed wake time per weekday (minutes, Sunday first)"
    )
    pattern_confidence: list[float] = Field(
        description="Confidence per weekday (0-1, Sunday first)"
    )
    average_sleep_duration: float = Field(description="Average sleep hours")
    schedule_regularity: float = Field(
        ge=0, le=1, description="Bedtime consistency across the week (0-1)"
    )
    total_sessions: int = Field(ge=0, description="Sessions learned from")


class EngineStatistics(BaseModel):
    """Running counters for a SleepTrackingService instance."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "total_events_processed": 1432,
                "sleep_periods_detected": 12,
                "average_confidence_score": 0.71,
                "average_detection_time_us": 850.0,
                "cache_hit_rate": 0.64,
                "buffered_events": 1432,
                "memory_usage_bytes": 183296,
            }
        }
    )

    total_events_processed: int = Field(default=0, ge=0)
    sleep_periods_detected: int = Field(default=0, ge=0)
    average_confidence_score: float = Field(
        default=0.0, description="Mean confidence score over detections"
    )
    average_detection_time_us: float = Field(
        default=0.0, description="Mean detection latency (microseconds)"
    )
    cache_hit_rate: float = Field(default=0.0, ge=0, le=1)
    buffered_events: int = Field(default=0, ge=0)
    memory_usage_bytes: int = Field(
        default=0, ge=0, description="Approximate size of buffered data"
    )
