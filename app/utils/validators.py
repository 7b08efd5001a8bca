"""
Data Validation Utilities for race data quality checks

Provides validation helpers for CSV headers, car numbers and vehicle ids,
plus range clamping for playback speeds.
"""

from typing import Iterable, List, Optional, Tuple
import re


VEHICLE_ID_PATTERN = r"^{prefix}-{series}-{number}$"

_WHITESPACE = re.compile(r"\s+")
_TRAILING_NUMBER = re.compile(r"(\d+)\s*$")


def normalize_header(name: str) -> str:
    """
    Normalize a CSV column header.

    Strips surrounding whitespace and byte-order marks, lower-cases and
    replaces inner whitespace runs with underscores.

    Examples:
        >>> normalize_header("\\ufeffLAP_NUMBER ")
        'lap_number'
        >>> normalize_header("Top Speed")
        'top_speed'
    """
    text = str(name).replace("\ufeff", "").strip().strip('"').strip().lower()
    return _WHITESPACE.sub("_", text)


def normalize_headers(names: Iterable[str]) -> List[str]:
    """Normalize every header in a header row."""
    return [normalize_header(name) for name in names]


def detect_delimiter(header_line: str, candidates: Tuple[str, ...] = (",", ";")) -> str:
    """
    Pick the delimiter that splits the header line into the most fields.

    Args:
        header_line: First line of the file
        candidates: Delimiters to consider, in preference order on ties

    Returns:
        The chosen delimiter (the first candidate when none occurs)
    """
    best = candidates[0]
    best_count = header_line.count(best)
    for candidate in candidates[1:]:
        count = header_line.count(candidate)
        if count > best_count:
            best, best_count = candidate, count
    return best


def validate_car_number(car_number: Optional[int]) -> bool:
    """
    Validate a racing car number.

    Returns:
        True if a positive integer, False otherwise
    """
    return isinstance(car_number, int) and not isinstance(car_number, bool) and car_number > 0


def extract_trailing_number(text: str) -> Optional[int]:
    """
    Extract the trailing integer of a vehicle id or car label.

    Examples:
        >>> extract_trailing_number("GR86-004-78")
        78
        >>> extract_trailing_number("car")
    """
    if text is None:
        return None
    match = _TRAILING_NUMBER.search(str(text))
    if not match:
        return None
    return int(match.group(1))


def vehicle_id_regex(prefix: str, series: str = "004", number_width: int = 0) -> "re.Pattern[str]":
    """
    Compile the vehicle id pattern for an id template.

    The car number segment is any positive number, zero-padded to at least
    ``number_width`` digits when padding is configured.
    """
    if number_width:
        number = rf"(?!0+$)\d{{{number_width},}}"
    else:
        number = r"[1-9]\d*"
    return re.compile(VEHICLE_ID_PATTERN.format(
        prefix=re.escape(prefix),
        series=re.escape(series),
        number=number,
    ))


def validate_vehicle_id(
    vehicle_id: str,
    prefix: str = "GR86",
    series: str = "004",
    number_width: int = 0,
) -> bool:
    """
    Validate a vehicle id against the '<PREFIX>-<SERIES>-<NUMBER>' template.

    Examples:
        >>> validate_vehicle_id("GR86-004-78")
        True
        >>> validate_vehicle_id("GR86-004-1234")
        True
        >>> validate_vehicle_id("GR86-4-78")
        False
        >>> validate_vehicle_id("GR86-004-0078", number_width=4)
        True
    """
    if not isinstance(vehicle_id, str):
        return False
    return bool(vehicle_id_regex(prefix, series, number_width).match(vehicle_id))


def clamp(value: float, min_value: float, max_value: float) -> float:
    """Clamp a value into [min_value, max_value]."""
    return max(min_value, min(max_value, value))
