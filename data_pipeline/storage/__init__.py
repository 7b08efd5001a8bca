"""
Storage Package - Relational schema and database helpers
"""

from data_pipeline.storage.schema import (
    SCHEMA_VERSION,
    metadata,
    vehicles,
    lap_times,
    telemetry,
    race_results,
    section_times,
    weather,
    schema_version,
)
from data_pipeline.storage.database import (
    create_engine,
    init_database,
    insert_ignore,
    count_rows,
    table_counts,
    has_data,
    normalize_database_url,
)

__all__ = [
    "SCHEMA_VERSION",
    "metadata",
    "vehicles",
    "lap_times",
    "telemetry",
    "race_results",
    "section_times",
    "weather",
    "schema_version",
    "create_engine",
    "init_database",
    "insert_ignore",
    "count_rows",
    "table_counts",
    "has_data",
    "normalize_database_url",
]
