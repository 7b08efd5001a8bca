"""
Lap Time Parser - Lap timing exports (one row per completed lap)

Lap values are milliseconds; clock style values ('1:38.123') are accepted too.
"""

from data_pipeline.parsers.base_parser import BaseParser
from data_pipeline.schemas.records import LapRow


class LapTimeParser(BaseParser):
    """Parser for ``*lap_time*.csv`` files."""

    source_name = "lap_times"
    schema_class = LapRow
    default_delimiter = ","
    column_map = {
        "vehicle_number": "car_number",
        "car_number": "car_number",
        "number": "car_number",
        "vehicle_id": "vehicle_id",
        "lap": "lap",
        "lap_number": "lap",
        "value": "lap_time",
        "lap_time": "lap_time",
        "timestamp": "timestamp",
    }
    required_fields = (
        ("car_number", "vehicle_id"),
        ("lap",),
        ("lap_time",),
    )
