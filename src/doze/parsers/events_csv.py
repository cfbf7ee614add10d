"""
CSV loader for interaction event logs.

Expected columns (header row required):

    timestamp     ISO 8601 timestamp
    category      App category name or code (e.g. "social", "clock", 5)
    duration_ms   Interaction length in milliseconds

Optional columns: kind, app_hash, session_id, interaction_count.
"""

import csv
import logging

from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

from doze.constants import (
    InteractionKind,
    parse_app_category,
    parse_interaction_kind,
)
from doze.models.events import InteractionEvent

logger = logging.getLogger(__name__)

__all__ = ["EventParseError", "load_events_csv", "parse_event_row"]

REQUIRED_COLUMNS = ("timestamp", "category", "duration_ms")
ROW_ERRORS = (ValueError, TypeError, KeyError, AttributeError, OverflowError)


class EventParseError(Exception):
    """Raised when an event file cannot be read at all."""

    def __init__(self, message: str, path: Path | None = None):
        super().__init__(message)
        self.path = path


def _optional_int(row: dict[str, Any], column: str) -> int:
    value = (row.get(column) or "").strip()
    return int(value) if value else 0


def parse_event_row(row: dict[str, Any]) -> InteractionEvent:
    """
    Build an event from one CSV row.

    Raises:
        ValueError: If any field is malformed (pydantic's ValidationError
            included)
        OverflowError: If duration_ms is infinite or out of range
    """
    kind_value = (row.get("kind") or "").strip()
    kind = parse_interaction_kind(kind_value) if kind_value else InteractionKind.UNKNOWN

    return InteractionEvent(
        timestamp=datetime.fromisoformat(row["timestamp"].strip()),
        duration=timedelta(milliseconds=float(row["duration_ms"])),
        kind=kind,
        app_category=parse_app_category(row["category"]),
        app_hash=_optional_int(row, "app_hash"),
        session_id=_optional_int(row, "session_id"),
        interaction_count_in_session=_optional_int(row, "interaction_count"),
    )


def load_events_csv(path: Path) -> list[InteractionEvent]:
    """
    Load interaction events from a CSV file.

    Malformed rows are skipped with a warning.

    Args:
        path: CSV file path

    Returns:
        Events in file order

    Raises:
        EventParseError: If the file is missing or lacks required columns
    """
    path = Path(path)
    if not path.is_file():
        raise EventParseError(f"Event file not found: {path}", path)

    events: list[InteractionEvent] = []
    skipped = 0
    with open(path, newline="") as f:
        reader = csv.DictReader(f)
        columns = {name.strip() for name in (reader.fieldnames or [])}
        missing = [c for c in REQUIRED_COLUMNS if c not in columns]
        if missing:
            raise EventParseError(
                f"{path} is missing required columns: {', '.join(missing)}", path
            )

        for line_number, row in enumerate(reader, start=2):
            row = {(k or "").strip(): v for k, v in row.items()}
            try:
                events.append(parse_event_row(row))
            except ROW_ERRORS as e:
                skipped += 1
                logger.warning(f"Skipping {path.name}:{line_number}: {e}")

    logger.info(f"Loaded {len(events)} events from {path} ({skipped} skipped)")
    return events
