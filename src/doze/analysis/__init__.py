"""Sleep inference engine."""

from doze.analysis.detector import SleepDetector
from doze.analysis.event_store import EventStore
from doze.analysis.pattern_matcher import PatternMatcher
from doze.analysis.service import SleepTrackingService

__all__ = [
    "EventStore",
    "PatternMatcher",
    "SleepDetector",
    "SleepTrackingService",
]
