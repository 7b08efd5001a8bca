"""
Telemetry Parser - Long-format telemetry exports

One row per (vehicle, timestamp, channel) sample. Files are large, so they
are always consumed through ``iter_batches`` by the import pipeline; rows
arrive in no particular time order.
"""

from data_pipeline.parsers.base_parser import BaseParser
from data_pipeline.schemas.records import TelemetryRow


class TelemetryParser(BaseParser):
    """Parser for ``*telemetry*.csv`` files."""

    source_name = "telemetry"
    schema_class = TelemetryRow
    default_delimiter = ","
    column_map = {
        "vehicle_number": "car_number",
        "car_number": "car_number",
        "number": "car_number",
        "vehicle_id": "vehicle_id",
        "lap": "lap",
        "timestamp": "timestamp",
        "telemetry_name": "telemetry_name",
        "telemetry_value": "telemetry_value",
    }
    required_fields = (
        ("car_number", "vehicle_id"),
        ("timestamp",),
        ("telemetry_name",),
        ("telemetry_value",),
    )
