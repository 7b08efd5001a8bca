"""
Time Conversion Utilities for race timing formats

Handles lap/section time strings, canonical ISO timestamps and the
millisecond deltas used by the replay scheduler.
"""

from datetime import datetime, timezone
from typing import Optional, Union
import math


ISO_FORMAT = "%Y-%m-%dT%H:%M:%S"

# Fallback formats seen in timing exports
_FALLBACK_FORMATS = [
    "%Y-%m-%d %H:%M:%S.%f",
    "%Y-%m-%d %H:%M:%S",
    "%m/%d/%Y %I:%M:%S %p",
    "%m/%d/%Y %H:%M:%S",
    "%d/%m/%Y %H:%M:%S",
]


def lap_time_to_milliseconds(lap_time: str) -> float:
    """
    Convert a clock-style time string to milliseconds.

    Args:
        lap_time: Time in format 'M:SS.mmm', 'H:MM:SS.mmm' or 'SS.mmm'
                  Examples: '1:23.456', '83.456'

    Returns:
        Time in milliseconds as float

    Raises:
        ValueError: If format is invalid
    """
    text = lap_time.strip() if isinstance(lap_time, str) else lap_time
    if not text:
        raise ValueError(f"Invalid lap time format: {lap_time!r}")

    try:
        parts = text.split(":")
        if len(parts) > 3:
            raise ValueError(f"Invalid lap time format: {lap_time}")

        seconds = float(parts[-1])
        minutes = int(parts[-2]) if len(parts) >= 2 else 0
        hours = int(parts[-3]) if len(parts) == 3 else 0
    except (ValueError, IndexError) as e:
        raise ValueError(f"Invalid lap time format: {lap_time}") from e

    if seconds < 0 or minutes < 0 or hours < 0 or math.isnan(seconds):
        raise ValueError(f"Invalid lap time format: {lap_time}")

    return round(((hours * 60 + minutes) * 60 + seconds) * 1000.0, 3)


def milliseconds_to_lap_time(milliseconds: Optional[float]) -> str:
    """
    Convert milliseconds to a 'M:SS.mmm' display string.

    Args:
        milliseconds: Lap time in milliseconds (None renders as 'N/A')

    Returns:
        Formatted lap time string
    """
    if milliseconds is None:
        return "N/A"
    if milliseconds < 0:
        raise ValueError("Lap time cannot be negative")

    total_seconds = milliseconds / 1000.0
    minutes = int(total_seconds // 60)
    remaining_seconds = total_seconds - minutes * 60
    return f"{minutes}:{remaining_seconds:06.3f}"


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_timestamp(value: Union[str, datetime, int, float]) -> datetime:
    """
    Parse a timestamp into an aware UTC datetime.

    Accepts datetimes, ISO 8601 strings (with 'Z', an offset, or naive and
    assumed UTC), a handful of export formats and epoch seconds.

    Raises:
        ValueError: If the value cannot be interpreted as a timestamp
    """
    if isinstance(value, datetime):
        return _as_utc(value)

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return epoch_seconds_to_datetime(value)

    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Unable to parse timestamp: {value!r}")

    text = value.strip()
    iso_text = text[:-1] + "+00:00" if text.endswith(("Z", "z")) else text
    try:
        return _as_utc(datetime.fromisoformat(iso_text))
    except ValueError:
        pass

    for fmt in _FALLBACK_FORMATS:
        try:
            return _as_utc(datetime.strptime(text, fmt))
        except ValueError:
            continue

    raise ValueError(f"Unable to parse timestamp: {value!r}")


def format_timestamp(dt: datetime) -> str:
    """
    Render a datetime in the canonical storage form 'YYYY-MM-DDTHH:MM:SS.mmmZ'.

    Fixed width so that lexical order equals chronological order.
    Microseconds are truncated (never rounded) to milliseconds.
    """
    dt = _as_utc(dt)
    return f"{dt.strftime(ISO_FORMAT)}.{dt.microsecond // 1000:03d}Z"


def to_iso_timestamp(value: Union[str, datetime, int, float]) -> str:
    """Parse any supported timestamp representation into canonical ISO form."""
    return format_timestamp(parse_timestamp(value))


def epoch_seconds_to_datetime(seconds: Union[int, float, str]) -> datetime:
    """
    Convert epoch seconds to an aware UTC datetime.

    Raises:
        ValueError: If the value is not a finite number
    """
    try:
        numeric = float(seconds)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid epoch seconds: {seconds!r}") from e

    if math.isnan(numeric) or math.isinf(numeric):
        raise ValueError(f"Invalid epoch seconds: {seconds!r}")

    return datetime.fromtimestamp(numeric, tz=timezone.utc)


def milliseconds_between(earlier: str, later: str) -> float:
    """
    Milliseconds elapsed between two timestamps.

    Args:
        earlier: Timestamp of the previous event
        later: Timestamp of the current event

    Returns:
        later - earlier in milliseconds (negative if out of order)
    """
    delta = parse_timestamp(later) - parse_timestamp(earlier)
    return delta.total_seconds() * 1000.0
