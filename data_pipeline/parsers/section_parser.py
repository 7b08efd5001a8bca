"""
Section Parser - Endurance section analysis exports

Section and lap times arrive as 'M:SS.mmm' or plain seconds and are stored
in milliseconds. Missing sections stay empty.
"""

from data_pipeline.parsers.base_parser import BaseParser
from data_pipeline.schemas.records import SectionRow


class SectionParser(BaseParser):
    """Parser for ``*Endurance*.CSV`` / ``*section*.csv`` files."""

    source_name = "sections"
    schema_class = SectionRow
    default_delimiter = ";"
    column_map = {
        "number": "car_number",
        "car_number": "car_number",
        "vehicle_id": "vehicle_id",
        "lap_number": "lap",
        "lap": "lap",
        "lap_time": "lap_time",
        "s1": "s1",
        "s2": "s2",
        "s3": "s3",
        "top_speed": "top_speed",
    }
    required_fields = (
        ("car_number", "vehicle_id"),
        ("lap",),
    )
