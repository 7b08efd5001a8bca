"""
Relational schema for imported race data.

Timestamps are TEXT in the fixed-width form 'YYYY-MM-DDTHH:MM:SS.mmmZ' so
that ordering by the column is chronological on every backend. Sub-millisecond
precision is truncated on import: samples within the same millisecond share a
timestamp and replay in insertion (id) order. Lap, section and fastest lap
times are milliseconds.
"""

import sqlalchemy as sa


SCHEMA_VERSION = 1

metadata = sa.MetaData()

vehicles = sa.Table(
    "vehicles",
    metadata,
    sa.Column("vehicle_id", sa.String, primary_key=True),
    sa.Column("car_number", sa.Integer, nullable=False, unique=True),
    sa.Column("class", sa.String),
    sa.Column("fastest_lap", sa.Float),
    sa.Column("average_lap", sa.Float),
    sa.Column("total_laps", sa.Integer),
    sa.Column("max_speed", sa.Float),
    sa.Column("position", sa.Integer),
    sa.Index("idx_vehicles_class", "class"),
    sa.Index("idx_vehicles_fastest_lap", "fastest_lap"),
)

lap_times = sa.Table(
    "lap_times",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column("vehicle_id", sa.String, sa.ForeignKey("vehicles.vehicle_id"), nullable=False),
    sa.Column("lap", sa.Integer, nullable=False),
    sa.Column("lap_time", sa.Float, nullable=False),
    sa.Column("timestamp", sa.String),
    sa.Index("idx_lap_times_vehicle", "vehicle_id"),
    sa.Index("idx_lap_times_lap", "lap"),
    sa.Index("idx_lap_times_time", "lap_time"),
)

telemetry = sa.Table(
    "telemetry",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column("vehicle_id", sa.String, sa.ForeignKey("vehicles.vehicle_id"), nullable=False),
    sa.Column("lap", sa.Integer),
    sa.Column("timestamp", sa.String, nullable=False),
    sa.Column("telemetry_name", sa.String, nullable=False),
    sa.Column("telemetry_value", sa.Float, nullable=False),
    sa.Index("idx_telemetry_vehicle", "vehicle_id"),
    sa.Index("idx_telemetry_lap", "vehicle_id", "lap"),
    sa.Index("idx_telemetry_timestamp", "timestamp"),
    sa.Index("idx_telemetry_name", "telemetry_name"),
    # replay keyset scan
    sa.Index("idx_telemetry_replay", "vehicle_id", "timestamp", "id"),
)

race_results = sa.Table(
    "race_results",
    metadata,
    sa.Column("vehicle_id", sa.String, sa.ForeignKey("vehicles.vehicle_id"), primary_key=True),
    sa.Column("position", sa.Integer, nullable=False),
    sa.Column("car_number", sa.Integer, nullable=False),
    sa.Column("laps", sa.Integer, nullable=False),
    sa.Column("total_time", sa.String),
    sa.Column("gap_first", sa.String),
    sa.Column("gap_previous", sa.String),
    sa.Column("best_lap_time", sa.String),
    sa.Column("class", sa.String),
    sa.Index("idx_results_position", "position"),
)

section_times = sa.Table(
    "section_times",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column("vehicle_id", sa.String, sa.ForeignKey("vehicles.vehicle_id"), nullable=False),
    sa.Column("lap", sa.Integer, nullable=False),
    sa.Column("s1", sa.Float),
    sa.Column("s2", sa.Float),
    sa.Column("s3", sa.Float),
    sa.Column("lap_time", sa.Float),
    sa.Column("top_speed", sa.Float),
    sa.Index("idx_section_vehicle", "vehicle_id"),
    sa.Index("idx_section_lap", "vehicle_id", "lap"),
)

weather = sa.Table(
    "weather",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column("timestamp", sa.String, nullable=False),
    sa.Column("air_temp", sa.Float),
    sa.Column("track_temp", sa.Float),
    sa.Column("humidity", sa.Float),
    sa.Column("pressure", sa.Float),
    sa.Column("wind_speed", sa.Float),
    sa.Column("wind_direction", sa.Float),
    sa.Column("rain", sa.Float),
    sa.Index("idx_weather_timestamp", "timestamp"),
)

schema_version = sa.Table(
    "schema_version",
    metadata,
    sa.Column("version", sa.Integer, primary_key=True, autoincrement=False),
    sa.Column("applied_at", sa.String, nullable=False),
)

DATA_TABLES = (vehicles, lap_times, telemetry, race_results, section_times, weather)
