"""
Pipeline error taxonomy.

Every error carries a stable ``code`` so callers (CLI, stream endpoint) can
report failures without matching on messages.
"""

from typing import Any, Dict, Optional


class PipelineError(Exception):
    """Base class for all import and replay failures."""

    code = "PIPELINE_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ParseError(PipelineError):
    """
    A CSV row or file could not be normalized.

    Row-level parse errors are counted and skipped; file-level ones fail
    that one file.
    """

    code = "PARSE_ERROR"

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        row: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.source = source
        self.row = row

    def __str__(self) -> str:
        if self.row is not None:
            return f"row {self.row}: {self.message}"
        return self.message


class IdentityError(PipelineError):
    """A record carries no usable car number."""

    code = "IDENTITY_ERROR"


class DataImportError(PipelineError):
    """A source file could not be written; its transaction was rolled back."""

    code = "IMPORT_ERROR"

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.source = source


class StreamError(PipelineError):
    """A replay session failed while reading the store."""

    code = "STREAM_ERROR"


class SchemaVersionError(PipelineError):
    """The store was written by a newer schema than this code understands."""

    code = "SCHEMA_ERROR"
