"""
Race Data Engine - Core Application Package
"""

__version__ = "0.1.0"
__author__ = "Race Data Team"

# Package-level imports for common utilities
from app.utils.logger import get_logger
from app.utils.time_utils import lap_time_to_milliseconds, milliseconds_to_lap_time
from app.utils.validators import validate_car_number, validate_vehicle_id

__all__ = [
    "get_logger",
    "lap_time_to_milliseconds",
    "milliseconds_to_lap_time",
    "validate_car_number",
    "validate_vehicle_id",
]
