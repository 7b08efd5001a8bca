"""
Race Data Record Schemas - One fixed record shape per CSV source

Parsers hand normalized column values (mostly text) to these models; the
validators convert the textual encodings found in timing exports (clock
style lap times, epoch seconds, free-form ISO timestamps) into the stored
representation. Times are milliseconds, timestamps are canonical ISO UTC.
"""

from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Any, Optional
import math

from app.utils.time_utils import (
    lap_time_to_milliseconds,
    to_iso_timestamp,
    epoch_seconds_to_datetime,
    format_timestamp,
)
from app.utils.validators import extract_trailing_number


def _blank_to_none(value: Any) -> Any:
    """Treat empty cells and NaN as missing."""
    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    return value


def _to_int(value: Any) -> Optional[int]:
    value = _blank_to_none(value)
    if value is None:
        return None
    if isinstance(value, str):
        number = float(value.strip())
    else:
        number = float(value)
    if not number.is_integer():
        raise ValueError(f"Expected an integer, got {value!r}")
    return int(number)


def _to_float(value: Any) -> Optional[float]:
    value = _blank_to_none(value)
    if value is None:
        return None
    number = float(value.strip()) if isinstance(value, str) else float(value)
    if math.isnan(number) or math.isinf(number):
        raise ValueError(f"Expected a finite number, got {value!r}")
    return number


def _clock_to_ms(value: Any) -> Optional[float]:
    """Section style time: 'M:SS.mmm' or 'SS.mmm' seconds."""
    value = _blank_to_none(value)
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value) * 1000.0
    return lap_time_to_milliseconds(value)


def _to_text(value: Any) -> Optional[str]:
    value = _blank_to_none(value)
    if value is None:
        return None
    return str(value).strip()


class VehicleKeyedRecord(BaseModel):
    """
    Base for records that belong to a vehicle.

    The car number comes from a number column when one carries a positive
    value, otherwise from the trailing segment of a supplied vehicle id.
    Identity resolution itself happens in the loader.
    """

    car_number: Optional[int] = Field(None, description="Racing car number")
    vehicle_id: Optional[str] = Field(None, description="Vehicle id as supplied by the source")

    @model_validator(mode="before")
    @classmethod
    def derive_car_number(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data

        data = dict(data)
        number = _to_int(data.get("car_number"))
        if number is None or number <= 0:
            supplied = _to_text(data.get("vehicle_id"))
            derived = extract_trailing_number(supplied) if supplied else None
            if derived is not None:
                number = derived
        data["car_number"] = number
        return data

    @field_validator("vehicle_id", mode="before")
    @classmethod
    def clean_vehicle_id(cls, v: Any) -> Optional[str]:
        return _to_text(v)


class LapRow(VehicleKeyedRecord):
    """One completed lap from a lap timing export."""

    lap: int = Field(ge=0, description="Lap number")
    lap_time: float = Field(gt=0.0, description="Lap time in milliseconds")
    timestamp: Optional[str] = Field(None, description="Lap completion time (ISO UTC)")

    @field_validator("lap", mode="before")
    @classmethod
    def parse_lap(cls, v: Any) -> Optional[int]:
        return _to_int(v)

    @field_validator("lap_time", mode="before")
    @classmethod
    def parse_lap_time(cls, v: Any) -> Optional[float]:
        """Plain numbers are milliseconds; clock strings are converted."""
        v = _blank_to_none(v)
        if isinstance(v, str) and ":" in v:
            return lap_time_to_milliseconds(v)
        return _to_float(v)

    @field_validator("timestamp", mode="before")
    @classmethod
    def parse_timestamp(cls, v: Any) -> Optional[str]:
        v = _blank_to_none(v)
        if v is None:
            return None
        return to_iso_timestamp(v)

    class Config:
        json_schema_extra = {
            "example": {
                "car_number": 78,
                "vehicle_id": "GR86-004-78",
                "lap": 3,
                "lap_time": 98123.0,
                "timestamp": "2025-04-27T14:03:21.456Z",
            }
        }


class TelemetryRow(VehicleKeyedRecord):
    """A single named telemetry sample."""

    lap: Optional[int] = Field(None, ge=0, description="Lap number")
    timestamp: str = Field(description="Sample time (ISO UTC)")
    telemetry_name: str = Field(min_length=1, description="Channel name, e.g. vCar")
    telemetry_value: float = Field(description="Channel value")

    @field_validator("lap", mode="before")
    @classmethod
    def parse_lap(cls, v: Any) -> Optional[int]:
        return _to_int(v)

    @field_validator("timestamp", mode="before")
    @classmethod
    def parse_timestamp(cls, v: Any) -> Optional[str]:
        v = _blank_to_none(v)
        if v is None:
            return None
        return to_iso_timestamp(v)

    @field_validator("telemetry_name", mode="before")
    @classmethod
    def clean_name(cls, v: Any) -> Optional[str]:
        return _to_text(v)

    @field_validator("telemetry_value", mode="before")
    @classmethod
    def parse_value(cls, v: Any) -> Optional[float]:
        return _to_float(v)


class ResultRow(VehicleKeyedRecord):
    """Final classification row for one vehicle."""

    position: int = Field(ge=1, description="Finishing position")
    laps: int = Field(ge=0, description="Laps completed")
    total_time: Optional[str] = Field(None, description="Total race time as published")
    gap_first: Optional[str] = Field(None, description="Gap to the winner as published")
    gap_previous: Optional[str] = Field(None, description="Gap to the car ahead as published")
    best_lap_time: Optional[str] = Field(None, description="Fastest lap as published")
    vehicle_class: Optional[str] = Field(None, description="Competition class")

    @field_validator("position", "laps", mode="before")
    @classmethod
    def parse_int(cls, v: Any) -> Optional[int]:
        return _to_int(v)

    @field_validator(
        "total_time", "gap_first", "gap_previous", "best_lap_time", "vehicle_class",
        mode="before",
    )
    @classmethod
    def clean_text(cls, v: Any) -> Optional[str]:
        return _to_text(v)


class SectionRow(VehicleKeyedRecord):
    """Per-lap section (sector) analysis row."""

    lap: int = Field(ge=0, description="Lap number")
    s1: Optional[float] = Field(None, ge=0.0, description="Section 1 time in milliseconds")
    s2: Optional[float] = Field(None, ge=0.0, description="Section 2 time in milliseconds")
    s3: Optional[float] = Field(None, ge=0.0, description="Section 3 time in milliseconds")
    lap_time: Optional[float] = Field(None, ge=0.0, description="Lap time in milliseconds")
    top_speed: Optional[float] = Field(None, ge=0.0, description="Top speed (km/h)")

    @field_validator("lap", mode="before")
    @classmethod
    def parse_lap(cls, v: Any) -> Optional[int]:
        return _to_int(v)

    @field_validator("s1", "s2", "s3", "lap_time", mode="before")
    @classmethod
    def parse_times(cls, v: Any) -> Optional[float]:
        return _clock_to_ms(v)

    @field_validator("top_speed", mode="before")
    @classmethod
    def parse_speed(cls, v: Any) -> Optional[float]:
        return _to_float(v)


class WeatherRow(BaseModel):
    """Track-side weather observation; not tied to a vehicle."""

    timestamp: str = Field(description="Observation time (ISO UTC)")
    air_temp: Optional[float] = Field(None, description="Air temperature")
    track_temp: Optional[float] = Field(None, description="Track temperature")
    humidity: Optional[float] = Field(None, description="Relative humidity")
    pressure: Optional[float] = Field(None, description="Atmospheric pressure")
    wind_speed: Optional[float] = Field(None, description="Wind speed")
    wind_direction: Optional[float] = Field(None, description="Wind direction in degrees")
    rain: Optional[float] = Field(None, description="Rain indicator / amount")

    @model_validator(mode="before")
    @classmethod
    def resolve_timestamp(cls, data: Any) -> Any:
        """Epoch seconds win over a textual time column."""
        if not isinstance(data, dict):
            return data

        data = dict(data)
        epoch = _blank_to_none(data.pop("epoch_seconds", None))
        if epoch is not None:
            data["timestamp"] = format_timestamp(epoch_seconds_to_datetime(epoch))
        elif _blank_to_none(data.get("timestamp")) is not None:
            data["timestamp"] = to_iso_timestamp(data["timestamp"])
        return data

    @field_validator(
        "air_temp", "track_temp", "humidity", "pressure",
        "wind_speed", "wind_direction", "rain",
        mode="before",
    )
    @classmethod
    def parse_float(cls, v: Any) -> Optional[float]:
        return _to_float(v)
