"""
Utilities Module - Shared helper functions for the race data engine
"""

from app.utils.logger import get_logger, setup_logging, set_correlation_id, correlation_scope
from app.utils.time_utils import (
    lap_time_to_milliseconds,
    milliseconds_to_lap_time,
    parse_timestamp,
    format_timestamp,
    to_iso_timestamp,
    epoch_seconds_to_datetime,
    milliseconds_between,
)
from app.utils.validators import (
    normalize_header,
    normalize_headers,
    detect_delimiter,
    validate_car_number,
    validate_vehicle_id,
    extract_trailing_number,
    clamp,
)

__all__ = [
    "get_logger",
    "setup_logging",
    "set_correlation_id",
    "correlation_scope",
    "lap_time_to_milliseconds",
    "milliseconds_to_lap_time",
    "parse_timestamp",
    "format_timestamp",
    "to_iso_timestamp",
    "epoch_seconds_to_datetime",
    "milliseconds_between",
    "normalize_header",
    "normalize_headers",
    "detect_delimiter",
    "validate_car_number",
    "validate_vehicle_id",
    "extract_trailing_number",
    "clamp",
]
