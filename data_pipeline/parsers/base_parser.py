"""
Base Parser - Abstract base class for all CSV source parsers

Provides the shared read path: delimiter detection, header normalization,
chunked reading with pandas, per-row validation against the source's
record schema and the parse report.
"""

from abc import ABC
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple, Type, Union

import pandas as pd
from pydantic import BaseModel, ValidationError

from app.utils.logger import get_logger
from app.utils.validators import detect_delimiter, normalize_headers
from config.settings import ImportSettings
from data_pipeline.errors import ParseError
from data_pipeline.utils.metrics import PipelineMetrics, pipeline_metrics


@dataclass
class ParseReport:
    """Outcome of parsing one source file."""

    source: str
    path: str
    rows_read: int = 0
    rows_parsed: int = 0
    rows_skipped: int = 0
    errors: List[str] = field(default_factory=list)
    max_error_samples: int = 20

    def add_error(self, error: ParseError) -> None:
        """Count a skipped row and keep a bounded sample of its message."""
        self.rows_skipped += 1
        if len(self.errors) < self.max_error_samples:
            self.errors.append(str(error))


def describe_validation_error(error: Exception) -> str:
    """Compact one-line description of a row validation failure."""
    if isinstance(error, ValidationError):
        parts = []
        for detail in error.errors():
            location = ".".join(str(part) for part in detail.get("loc", ())) or "record"
            parts.append(f"{location}: {detail.get('msg')}")
        return "; ".join(parts)
    return str(error)


class BaseParser(ABC):
    """
    Abstract base class for CSV source parsers.

    Subclasses declare:
    - ``source_name``: source label used in reports, logs and metrics
    - ``schema_class``: pydantic record model built from each row
    - ``column_map``: normalized header -> record field (first match wins)
    - ``required_fields``: groups of fields; each group needs one column
    - ``default_delimiter``: used when the header line has no separator
    """

    source_name: str = ""
    schema_class: Type[BaseModel]
    column_map: Dict[str, str] = {}
    required_fields: Tuple[Tuple[str, ...], ...] = ()
    default_delimiter: str = ","

    def __init__(
        self,
        settings: Optional[ImportSettings] = None,
        metrics: Optional[PipelineMetrics] = None,
    ):
        """
        Initialize parser.

        Args:
            settings: Import settings (batch size, error sample bound)
            metrics: Metrics sink (defaults to the process-wide one)
        """
        self.settings = settings or ImportSettings()
        self.metrics = metrics or pipeline_metrics
        self.batch_size = self.settings.batch_size
        self.logger = get_logger(f"parser.{self.source_name}")

    def new_report(self, path: Union[str, Path]) -> ParseReport:
        return ParseReport(
            source=self.source_name,
            path=str(path),
            max_error_samples=self.settings.max_error_samples,
        )

    def read_header(self, path: Union[str, Path]) -> Tuple[str, List[str]]:
        """
        Read the header line and detect the delimiter.

        Returns:
            Tuple of (delimiter, normalized header names)

        Raises:
            ParseError: If the file cannot be read or has no header row
        """
        try:
            with open(path, "r", encoding="utf-8-sig", newline="") as handle:
                header_line = handle.readline()
        except (OSError, UnicodeDecodeError) as e:
            raise ParseError(
                f"Cannot read {self.source_name} file {path}: {e}",
                source=self.source_name,
            ) from e

        if not header_line.strip():
            raise ParseError(
                f"{self.source_name} file {path} has no header row",
                source=self.source_name,
            )

        other = ";" if self.default_delimiter == "," else ","
        delimiter = detect_delimiter(header_line, (self.default_delimiter, other))
        headers = normalize_headers(header_line.rstrip("\r\n").split(delimiter))
        return delimiter, headers

    def map_columns(self, headers: List[str]) -> Dict[str, str]:
        """
        Map normalized headers onto record fields.

        Unknown columns are ignored. When several headers map to the same
        field, the one listed first in ``column_map`` wins.

        Raises:
            ParseError: If a required field group has no column
        """
        present = set(headers)
        mapping: Dict[str, str] = {}
        taken = set()
        for header, field_name in self.column_map.items():
            if header in present and field_name not in taken:
                mapping[header] = field_name
                taken.add(field_name)

        missing = [
            "/".join(group) for group in self.required_fields
            if not any(name in taken for name in group)
        ]
        if missing:
            raise ParseError(
                f"{self.source_name} file is missing required columns: {', '.join(missing)}",
                source=self.source_name,
                details={"headers": headers},
            )
        return mapping

    def build_record(self, row: Dict[str, Any]) -> BaseModel:
        """Build one typed record from a mapped row."""
        return self.schema_class(**row)

    def iter_batches(
        self,
        path: Union[str, Path],
        report: Optional[ParseReport] = None,
    ) -> Iterator[List[BaseModel]]:
        """
        Parse a file lazily, yielding batches of typed records.

        Rows that cannot be normalized are skipped and counted in ``report``.

        Args:
            path: CSV file path
            report: Report to update (a fresh one is created if omitted)

        Yields:
            Non-empty lists of records, at most ``batch_size`` each

        Raises:
            ParseError: If the file cannot be read or has no usable header
        """
        report = report if report is not None else self.new_report(path)
        delimiter, headers = self.read_header(path)
        mapping = self.map_columns(headers)
        selected = list(mapping.keys())

        self.logger.info(
            f"Parsing {self.source_name} file {Path(path).name}",
            extra={"extra_data": {"delimiter": delimiter, "columns": selected}},
        )

        row_number = 0
        try:
            with pd.read_csv(
                path,
                sep=delimiter,
                dtype=str,
                keep_default_na=False,
                encoding="utf-8-sig",
                skip_blank_lines=True,
                chunksize=self.batch_size,
            ) as reader:
                for chunk in reader:
                    chunk.columns = normalize_headers(chunk.columns)
                    chunk = chunk.loc[:, ~chunk.columns.duplicated()]
                    chunk = chunk[selected].rename(columns=mapping)

                    batch: List[BaseModel] = []
                    for row in chunk.to_dict("records"):
                        row_number += 1
                        report.rows_read += 1
                        try:
                            batch.append(self.build_record(row))
                        except (ValidationError, ValueError) as e:
                            report.add_error(ParseError(
                                describe_validation_error(e),
                                source=self.source_name,
                                row=row_number,
                            ))

                    if batch:
                        report.rows_parsed += len(batch)
                        yield batch
        except pd.errors.EmptyDataError as e:
            raise ParseError(
                f"{self.source_name} file {path} has no header row",
                source=self.source_name,
            ) from e
        except (pd.errors.ParserError, UnicodeDecodeError) as e:
            raise ParseError(
                f"Malformed {self.source_name} file {path}: {e}",
                source=self.source_name,
                row=row_number + 1,
            ) from e
        finally:
            self.metrics.record_error(self.source_name, "parse", report.rows_skipped)

        if report.rows_skipped:
            self.logger.warning(
                f"Skipped {report.rows_skipped} malformed {self.source_name} rows",
                extra={"extra_data": {"path": str(path), "samples": report.errors[:5]}},
            )

    def parse(self, path: Union[str, Path]) -> Tuple[List[BaseModel], ParseReport]:
        """
        Parse a whole file into memory.

        Returns:
            Tuple of (records in file order, parse report)
        """
        report = self.new_report(path)
        records: List[BaseModel] = []
        for batch in self.iter_batches(path, report):
            records.extend(batch)
        return records, report
