"""
Weather Parser - Track-side weather station exports
"""

from data_pipeline.parsers.base_parser import BaseParser
from data_pipeline.schemas.records import WeatherRow


class WeatherParser(BaseParser):
    """Parser for ``*Weather*.CSV`` files. Observations carry epoch seconds."""

    source_name = "weather"
    schema_class = WeatherRow
    default_delimiter = ";"
    column_map = {
        "time_utc_seconds": "epoch_seconds",
        "time_utc_str": "timestamp",
        "timestamp": "timestamp",
        "air_temp": "air_temp",
        "track_temp": "track_temp",
        "humidity": "humidity",
        "pressure": "pressure",
        "wind_speed": "wind_speed",
        "wind_direction": "wind_direction",
        "rain": "rain",
    }
    required_fields = (
        ("epoch_seconds", "timestamp"),
    )
