"""
Data Pipeline Package - Race data import

Parses timing, results, section, weather and telemetry CSV exports, resolves
vehicle identities and loads everything into the relational store.
"""

from data_pipeline.errors import (
    PipelineError,
    ParseError,
    IdentityError,
    DataImportError,
    StreamError,
    SchemaVersionError,
)

__all__ = [
    "PipelineError",
    "ParseError",
    "IdentityError",
    "DataImportError",
    "StreamError",
    "SchemaVersionError",
]
