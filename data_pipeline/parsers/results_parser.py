"""
Results Parser - Final classification exports (semicolon separated)
"""

from data_pipeline.parsers.base_parser import BaseParser
from data_pipeline.schemas.records import ResultRow


class ResultsParser(BaseParser):
    """
    Parser for ``*Results*.CSV`` files.

    Rows without a position, car number or lap count are skipped; published
    time strings (total time, gaps, fastest lap) are stored as text.
    """

    source_name = "results"
    schema_class = ResultRow
    default_delimiter = ";"
    column_map = {
        "number": "car_number",
        "car_number": "car_number",
        "vehicle_id": "vehicle_id",
        "position": "position",
        "pos": "position",
        "laps": "laps",
        "total_time": "total_time",
        "gap_first": "gap_first",
        "gap_previous": "gap_previous",
        "fl_time": "best_lap_time",
        "best_lap_time": "best_lap_time",
        "class": "vehicle_class",
    }
    required_fields = (
        ("car_number", "vehicle_id"),
        ("position",),
        ("laps",),
    )
