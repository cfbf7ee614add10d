"""
Binary persistence format for sleep detection results.

Little-endian layout:

    header        magic "DOZE", uint16 version, uint32 session count
    session       int64 bedtime_us, int64 wake_us,
                  int32 bedtime_utc_offset_s, int32 wake_utc_offset_s,
                  float64 duration_hours, uint8 confidence,
                  float64 quality, float64 pattern_match,
                  uint8 flags, uint16 interruption count
    interruption  int64 timestamp_us, int64 duration_us,
                  int32 utc_offset_s, uint8 cause, uint8 app_category,
                  uint8 flags, float64 impact

Timestamps are exact microseconds since the Unix epoch (UTC for aware
datetimes, wall clock for naive ones), so every field survives a round trip.
"""

import struct

from collections.abc import Sequence
from datetime import datetime, timedelta, timezone

from pydantic import ValidationError

from doze.constants import AppCategory, InteractionKind, SleepConfidence
from doze.models.result import SleepDetectionResult, SleepInterruption

__all__ = [
    "FORMAT_VERSION",
    "MAGIC",
    "ExportFormatError",
    "export_binary",
    "import_binary",
]

MAGIC = b"DOZE"
FORMAT_VERSION = 1

HEADER = struct.Struct("<4sHI")
SESSION = struct.Struct("<qqiidBddBH")
INTERRUPTION = struct.Struct("<qqiBBBd")

# Session flags
FLAG_MANUAL = 0x01
FLAG_HAS_BEDTIME = 0x02
FLAG_HAS_WAKE = 0x04
FLAG_BEDTIME_AWARE = 0x08
FLAG_WAKE_AWARE = 0x10

# Interruption flags
FLAG_BRIEF = 0x01
FLAG_AWARE = 0x02

MAX_INTERRUPTIONS = 0xFFFF

NAIVE_EPOCH = datetime(1970, 1, 1)
UTC_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
ONE_MICROSECOND = timedelta(microseconds=1)


class ExportFormatError(Exception):
    """Raised when binary data cannot be decoded or encoded."""

    pass


def _encode_time(moment: datetime) -> tuple[int, int, bool]:
    """Return (microseconds since epoch, UTC offset seconds, is_aware)."""
    offset = moment.utcoffset()
    if offset is None:
        return (moment - NAIVE_EPOCH) // ONE_MICROSECOND, 0, False
    return (moment - UTC_EPOCH) // ONE_MICROSECOND, int(offset.total_seconds()), True


def _decode_time(micros: int, offset_seconds: int, aware: bool) -> datetime:
    if not aware:
        return NAIVE_EPOCH + micros * ONE_MICROSECOND
    zone = timezone(timedelta(seconds=offset_seconds))
    return (UTC_EPOCH + micros * ONE_MICROSECOND).astimezone(zone)


def _encode_session(result: SleepDetectionResult) -> bytes:
    if len(result.interruptions) > MAX_INTERRUPTIONS:
        raise ExportFormatError(
            f"Too many interruptions to encode: {len(result.interruptions)}"
        )

    flags = FLAG_MANUAL if result.is_manually_confirmed else 0
    bed_us = wake_us = bed_offset = wake_offset = 0
    if result.bedtime is not None:
        bed_us, bed_offset, aware = _encode_time(result.bedtime)
        flags |= FLAG_HAS_BEDTIME | (FLAG_BEDTIME_AWARE if aware else 0)
    if result.wake_time is not None:
        wake_us, wake_offset, aware = _encode_time(result.wake_time)
        flags |= FLAG_HAS_WAKE | (FLAG_WAKE_AWARE if aware else 0)

    parts = [
        SESSION.pack(
            bed_us,
            wake_us,
            bed_offset,
            wake_offset,
            result.duration_hours,
            int(result.confidence),
            result.quality_score,
            result.pattern_match_score,
            flags,
            len(result.interruptions),
        )
    ]
    for interruption in result.interruptions:
        ts_us, offset, aware = _encode_time(interruption.timestamp)
        int_flags = (FLAG_BRIEF if interruption.is_brief_check else 0) | (
            FLAG_AWARE if aware else 0
        )
        parts.append(
            INTERRUPTION.pack(
                ts_us,
                interruption.duration // ONE_MICROSECOND,
                offset,
                int(interruption.cause),
                int(interruption.app_category),
                int_flags,
                interruption.impact_score,
            )
        )
    return b"".join(parts)


def export_binary(results: Sequence[SleepDetectionResult]) -> bytes:
    """
    Encode results into the binary persistence format.

    Args:
        results: Results to encode (any state, including empty results)

    Returns:
        Encoded bytes
    """
    body = b"".join(_encode_session(result) for result in results)
    return HEADER.pack(MAGIC, FORMAT_VERSION, len(results)) + body


class _Reader:
    """Sequential struct reader over a bytes buffer."""

    def __init__(self, data: bytes):
        self.data = data
        self.offset = 0

    def read(self, layout: struct.Struct) -> tuple:
        end = self.offset + layout.size
        if end > len(self.data):
            raise ExportFormatError(
                f"Expected {layout.size} bytes at offset {self.offset}, "
                f"got {len(self.data) - self.offset}"
            )
        values = layout.unpack_from(self.data, self.offset)
        self.offset = end
        return values


def _decode_interruption(reader: _Reader) -> SleepInterruption:
    ts_us, duration_us, offset, cause, category, flags, impact = reader.read(
        INTERRUPTION
    )
    return SleepInterruption(
        timestamp=_decode_time(ts_us, offset, bool(flags & FLAG_AWARE)),
        duration=duration_us * ONE_MICROSECOND,
        cause=InteractionKind(cause),
        app_category=AppCategory(category),
        is_brief_check=bool(flags & FLAG_BRIEF),
        impact_score=impact,
    )


def _decode_session(reader: _Reader) -> SleepDetectionResult:
    (
        bed_us,
        wake_us,
        bed_offset,
        wake_offset,
        duration_hours,
        confidence,
        quality,
        pattern,
        flags,
        count,
    ) = reader.read(SESSION)

    interruptions = [_decode_interruption(reader) for _ in range(count)]

    bedtime = None
    if flags & FLAG_HAS_BEDTIME:
        bedtime = _decode_time(bed_us, bed_offset, bool(flags & FLAG_BEDTIME_AWARE))
    wake_time = None
    if flags & FLAG_HAS_WAKE:
        wake_time = _decode_time(wake_us, wake_offset, bool(flags & FLAG_WAKE_AWARE))

    return SleepDetectionResult(
        bedtime=bedtime,
        wake_time=wake_time,
        duration_hours=duration_hours,
        confidence=SleepConfidence(confidence),
        interruptions=interruptions,
        quality_score=quality,
        is_manually_confirmed=bool(flags & FLAG_MANUAL),
        pattern_match_score=pattern,
    )


def import_binary(data: bytes) -> list[SleepDetectionResult]:
    """
    Decode results written by export_binary().

    Args:
        data: Encoded bytes

    Returns:
        Decoded results in their original order

    Raises:
        ExportFormatError: If the data is truncated, corrupt, or from an
            unsupported format version
    """
    reader = _Reader(data)
    magic, version, count = reader.read(HEADER)
    if magic != MAGIC:
        raise ExportFormatError(f"Not a DOZE export (magic={magic!r})")
    if version != FORMAT_VERSION:
        raise ExportFormatError(f"Unsupported format version: {version}")

    try:
        results = [_decode_session(reader) for _ in range(count)]
    except (ValueError, OverflowError, ValidationError) as e:
        raise ExportFormatError(f"Corrupt session record: {e}") from e

    if reader.offset != len(data):
        raise ExportFormatError(
            f"{len(data) - reader.offset} trailing bytes after {count} sessions"
        )
    return results
