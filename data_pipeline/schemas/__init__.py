"""
Data Schemas Package - Pydantic models for parsed CSV records
"""

from data_pipeline.schemas.records import (
    VehicleKeyedRecord,
    LapRow,
    TelemetryRow,
    ResultRow,
    SectionRow,
    WeatherRow,
)

__all__ = [
    "VehicleKeyedRecord",
    "LapRow",
    "TelemetryRow",
    "ResultRow",
    "SectionRow",
    "WeatherRow",
]
