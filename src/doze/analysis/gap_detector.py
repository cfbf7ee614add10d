"""
Quiet-period detection.

Finds intervals between consecutive meaningful interactions that are long
enough to plausibly be sleep, plus the trailing interval from the last
meaningful interaction to the analysis time.
"""

import logging

from collections.abc import Sequence
from datetime import datetime, timedelta

from doze.analysis.classifier import is_meaningful_usage, is_time_check
from doze.constants import GapDetectionConstants as GDC
from doze.models.events import InteractionEvent, TimeGap

logger = logging.getLogger(__name__)

__all__ = ["GapDetector", "find_last_meaningful"]


class GapDetector:
    """
    Scans time-ordered events for candidate sleep gaps.

    Example:
        >>> detector = GapDetector(minimum_gap=timedelta(hours=4))
        >>> gaps = detector.detect(events, now=datetime.now())
        >>> sleep_gaps = detector.likely_sleep_gaps(gaps)
    """

    def __init__(
        self,
        minimum_gap: timedelta = GDC.MINIMUM_GAP,
        max_brief_interactions: int = GDC.MAX_BRIEF_INTERACTIONS,
    ):
        """
        Initialize the gap detector.

        Args:
            minimum_gap: Shortest quiet interval reported
            max_brief_interactions: Time checks at which a gap stops looking
                like sleep
        """
        self.minimum_gap = minimum_gap
        self.max_brief_interactions = max_brief_interactions

    def detect(
        self, events: Sequence[InteractionEvent], now: datetime | None = None
    ) -> list[TimeGap]:
        """
        Detect quiet gaps in chronologically sorted events.

        Args:
            events: Events sorted by timestamp
            now: Analysis time; enables the open-ended trailing gap

        Returns:
            Gaps in chronological order
        """
        gaps: list[TimeGap] = []
        last_meaningful: InteractionEvent | None = None
        brief_count = 0

        for event in events:
            if is_meaningful_usage(event):
                if last_meaningful is not None:
                    gap = self._make_gap(
                        last_meaningful.timestamp, event.timestamp, brief_count
                    )
                    if gap is not None:
                        gaps.append(gap)
                last_meaningful = event
                brief_count = 0
            elif last_meaningful is not None and is_time_check(event):
                brief_count += 1

        if now is not None and last_meaningful is not None:
            trailing = self._make_gap(
                last_meaningful.timestamp, now, brief_count, open_ended=True
            )
            if trailing is not None:
                gaps.append(trailing)

        logger.debug(f"Found {len(gaps)} gaps in {len(events)} events")
        return gaps

    def likely_sleep_gaps(self, gaps: Sequence[TimeGap]) -> list[TimeGap]:
        """Keep only the gaps that look like sleep."""
        return [
            gap
            for gap in gaps
            if gap.is_likely_sleep(self.minimum_gap, self.max_brief_interactions)
        ]

    def _make_gap(
        self,
        start: datetime,
        end: datetime,
        brief_count: int,
        open_ended: bool = False,
    ) -> TimeGap | None:
        if end <= start or end - start < self.minimum_gap:
            return None
        return TimeGap(
            start=start,
            end=end,
            brief_interaction_count=brief_count,
            is_open_ended=open_ended,
        )


def find_last_meaningful(
    events: Sequence[InteractionEvent], now: datetime | None = None
) -> InteractionEvent | None:
    """Latest meaningful event in sorted events, ignoring any after now."""
    for event in reversed(events):
        if now is not None and event.timestamp > now:
            continue
        if is_meaningful_usage(event):
            return event
    return None
