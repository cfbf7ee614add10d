"""
Interaction classification.

Maps a raw event to a semantic InteractionKind from its duration, its app
category and the event immediately before it. Duration is the primary
signal; a short re-check right after meaningful use is folded into the same
session so it does not split it.
"""

from datetime import timedelta

from doze.constants import AppCategory, InteractionKind
from doze.constants import ClassifierConstants as CC
from doze.models.events import InteractionEvent

__all__ = [
    "classify_event",
    "classify_interaction",
    "is_meaningful_usage",
    "is_sleep_related",
    "is_time_check",
]

MEANINGFUL_KINDS = frozenset(
    {
        InteractionKind.MEANINGFUL_USE,
        InteractionKind.EXTENDED_USE,
        InteractionKind.NOTIFICATION_RESPONSE,
    }
)


def classify_interaction(
    event: InteractionEvent,
    context: InteractionEvent | None = None,
    time_check_threshold: timedelta = CC.CONTEXT_BAND_MAX,
) -> InteractionKind:
    """
    Resolve the interaction kind of an event.

    Args:
        event: Event to classify
        context: Event immediately preceding it, if known
        time_check_threshold: Upper edge of the context-sensitive band

    Returns:
        The event's own kind when already set, else the derived kind
    """
    if event.kind != InteractionKind.UNKNOWN:
        return event.kind

    duration = event.duration
    if duration < CC.TIME_CHECK_MAX:
        return InteractionKind.TIME_CHECK

    if duration < time_check_threshold:
        if _continues_session(event, context):
            return InteractionKind.MEANINGFUL_USE
        # Clock glances and everything else in this band are time checks
        return InteractionKind.TIME_CHECK

    if duration < CC.MEANINGFUL_MAX:
        return InteractionKind.MEANINGFUL_USE
    return InteractionKind.EXTENDED_USE


def classify_event(
    event: InteractionEvent,
    context: InteractionEvent | None = None,
    time_check_threshold: timedelta = CC.CONTEXT_BAND_MAX,
) -> InteractionEvent:
    """Return the event with its kind resolved."""
    kind = classify_interaction(event, context, time_check_threshold)
    if kind == event.kind:
        return event
    return event.model_copy(update={"kind": kind})


def _continues_session(
    event: InteractionEvent, context: InteractionEvent | None
) -> bool:
    if context is None or context.kind != InteractionKind.MEANINGFUL_USE:
        return False
    elapsed = event.timestamp - context.timestamp
    return timedelta(0) <= elapsed < CC.CONTINUATION_WINDOW


def is_time_check(event: InteractionEvent) -> bool:
    """Brief glance at the phone rather than engagement."""
    if event.is_manual_confirmation:
        return False
    if event.kind == InteractionKind.TIME_CHECK:
        return True
    if event.duration < CC.BRIEF_CHECK_MAX:
        return True
    return (
        event.app_category == AppCategory.CLOCK_ALARM
        and event.duration < CC.CLOCK_CHECK_MAX
    )


def is_meaningful_usage(event: InteractionEvent) -> bool:
    """Interaction that indicates active, wakeful phone use."""
    if event.is_manual_confirmation:
        return False
    return event.kind in MEANINGFUL_KINDS or event.duration >= CC.MEANINGFUL_MIN


def is_sleep_related(event: InteractionEvent) -> bool:
    """Manual sleep confirmation or a quick alarm check."""
    if event.is_manual_confirmation:
        return True
    return (
        event.app_category == AppCategory.CLOCK_ALARM
        and event.duration < CC.SLEEP_RELATED_CLOCK_MAX
    )
