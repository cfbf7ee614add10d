"""
Text export of sleep detection results.

JSON carries every result (ongoing ones included); CSV is a one-row-per-night
table of valid results only, for spreadsheets.
"""

import csv
import io
import json

from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any

from doze.models.result import SleepDetectionResult
from doze.utils.time import timedelta_ms

__all__ = [
    "CSV_COLUMNS",
    "export_csv",
    "export_json",
    "export_performance_metrics",
]

CSV_COLUMNS = [
    "Date",
    "Bedtime",
    "WakeTime",
    "DurationHours",
    "Confidence",
    "QualityScore",
    "ManuallyConfirmed",
    "PatternMatch",
    "SleepEfficiency",
    "InterruptionsCount",
]


def _iso(moment: datetime | None) -> str | None:
    return moment.isoformat() if moment is not None else None


def _session_to_dict(
    result: SleepDetectionResult, include_debug: bool
) -> dict[str, Any]:
    session: dict[str, Any] = {
        "bedtime": _iso(result.bedtime),
        "wake_time": _iso(result.wake_time),
        "duration_hours": result.duration_hours,
        "confidence": result.confidence_label,
        "quality_score": result.quality_score,
        "manually_confirmed": result.is_manually_confirmed,
        "pattern_match_score": result.pattern_match_score,
        "sleep_efficiency": result.sleep_efficiency(),
        "interruptions_count": len(result.interruptions),
    }
    if include_debug:
        session["interruptions"] = [
            {
                "timestamp": interruption.timestamp.isoformat(),
                "duration_ms": timedelta_ms(interruption.duration),
                "cause": interruption.cause.label,
                "app_category": interruption.app_category.label,
                "is_brief_check": interruption.is_brief_check,
                "impact_score": interruption.impact_score,
            }
            for interruption in result.interruptions
        ]
    return session


def export_json(
    results: Sequence[SleepDetectionResult],
    include_debug: bool = False,
    exported_at: datetime | None = None,
) -> str:
    """
    Export results as a JSON document.

    Args:
        results: Results to export
        include_debug: Include the individual interruptions
        exported_at: Export timestamp (defaults to now)

    Returns:
        JSON text
    """
    document = {
        "export_timestamp": (exported_at or datetime.now()).isoformat(),
        "total_sessions": len(results),
        "include_debug": include_debug,
        "sleep_sessions": [_session_to_dict(r, include_debug) for r in results],
    }
    return json.dumps(document, indent=2)


def export_csv(results: Sequence[SleepDetectionResult]) -> str:
    """
    Export valid results as CSV, one row per sleep period.

    Args:
        results: Results to export; invalid ones are skipped

    Returns:
        CSV text with a header row
    """
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=CSV_COLUMNS, lineterminator="\n")
    writer.writeheader()

    for result in results:
        if not result.is_valid():
            continue
        assert result.bedtime is not None and result.wake_time is not None
        writer.writerow(
            {
                "Date": result.bedtime.date().isoformat(),
                "Bedtime": result.bedtime.isoformat(),
                "WakeTime": result.wake_time.isoformat(),
                "DurationHours": f"{result.duration_hours:.2f}",
                "Confidence": result.confidence_label,
                "QualityScore": f"{result.quality_score:.3f}",
                "ManuallyConfirmed": str(result.is_manually_confirmed).lower(),
                "PatternMatch": f"{result.pattern_match_score:.3f}",
                "SleepEfficiency": f"{result.sleep_efficiency():.3f}",
                "InterruptionsCount": len(result.interruptions),
            }
        )
    return buffer.getvalue()


def export_performance_metrics(
    metrics: Mapping[str, float], exported_at: datetime | None = None
) -> str:
    """Export engine performance metrics as JSON."""
    document = {
        "timestamp": (exported_at or datetime.now()).isoformat(),
        "metrics": dict(sorted(metrics.items())),
    }
    return json.dumps(document, indent=2)
