"""
Source Parsers Package - One CSV parser per race data source
"""

from data_pipeline.parsers.base_parser import BaseParser, ParseReport
from data_pipeline.parsers.lap_time_parser import LapTimeParser
from data_pipeline.parsers.results_parser import ResultsParser
from data_pipeline.parsers.telemetry_parser import TelemetryParser
from data_pipeline.parsers.section_parser import SectionParser
from data_pipeline.parsers.weather_parser import WeatherParser

__all__ = [
    "BaseParser",
    "ParseReport",
    "LapTimeParser",
    "ResultsParser",
    "TelemetryParser",
    "SectionParser",
    "WeatherParser",
]
