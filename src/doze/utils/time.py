"""Wall-clock helpers shared by the detection components."""

from datetime import datetime, timedelta

from doze.constants import MINUTES_PER_DAY, SECONDS_PER_HOUR
from doze.constants import ScoringConstants as SC


def minutes_since_midnight(moment: datetime) -> int:
    """Minutes since local midnight of the given timestamp."""
    return moment.hour * 60 + moment.minute


def day_of_week(moment: datetime) -> int:
    """
    Day of week with Sunday as day zero.

    Args:
        moment: Timestamp to inspect

    Returns:
        0 (Sunday) through 6 (Saturday)
    """
    return (moment.weekday() + 1) % 7


def duration_hours(start: datetime, end: datetime) -> float:
    """Signed duration between two timestamps in hours."""
    return (end - start).total_seconds() / SECONDS_PER_HOUR


def timedelta_ms(delta: timedelta) -> float:
    """Length of a timedelta in milliseconds."""
    return delta.total_seconds() * 1000.0


def circular_minutes_diff(a: float, b: float) -> float:
    """
    Absolute distance between two clock times on a 24-hour circle.

    23:50 and 00:10 are 20 minutes apart, not 1420.
    """
    diff = abs(a - b) % MINUTES_PER_DAY
    return min(diff, MINUTES_PER_DAY - diff)


def unwrap_minutes(value: float, reference: float) -> float:
    """Shift a clock time by whole days so it lies within 12 hours of reference."""
    half_day = MINUTES_PER_DAY / 2
    while value - reference > half_day:
        value -= MINUTES_PER_DAY
    while reference - value > half_day:
        value += MINUTES_PER_DAY
    return value


def is_within_daily_time_range(
    moment: datetime, range_start: int, range_end: int
) -> bool:
    """
    Check whether a timestamp falls within a daily clock range.

    Ranges where start > end wrap past midnight (e.g. 22:00 to 06:00).

    Args:
        moment: Timestamp to check
        range_start: Range start in minutes since midnight
        range_end: Range end in minutes since midnight

    Returns:
        True if the timestamp's clock time is inside the range (inclusive)
    """
    minutes = minutes_since_midnight(moment)
    if range_start <= range_end:
        return range_start <= minutes <= range_end
    return minutes >= range_start or minutes <= range_end


def is_nighttime(moment: datetime) -> bool:
    """True between 22:00 and 06:00."""
    return is_within_daily_time_range(
        moment, SC.NIGHT_START_MINUTES, SC.NIGHT_END_MINUTES
    )
