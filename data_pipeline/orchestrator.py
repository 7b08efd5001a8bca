"""
Import Orchestrator - Coordinates a full import run

Discovers source files, runs parser -> identity resolver -> loader for each
file in a fixed order (telemetry last), then refreshes the vehicle summary
statistics.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Type, Union
import time

from app.context import PipelineContext
from app.utils.logger import correlation_scope, get_logger
from data_pipeline.aggregates import AggregateStatisticsComputer
from data_pipeline.errors import PipelineError
from data_pipeline.identity import VehicleIdentityResolver
from data_pipeline.loader import LoadResult, ReferentialLoader
from data_pipeline.parsers import (
    BaseParser,
    LapTimeParser,
    ParseReport,
    ResultsParser,
    SectionParser,
    TelemetryParser,
    WeatherParser,
)
from data_pipeline.storage.database import has_data


# Import order: vehicle-defining sources first, the large telemetry files last
SOURCE_ORDER = ["lap_times", "results", "sections", "weather", "telemetry"]

# Filename fragments (lower-case) per source, checked in this order
FILE_PATTERNS = [
    ("telemetry", ("telemetry",)),
    ("lap_times", ("lap_time",)),
    ("results", ("results",)),
    ("sections", ("endurance", "section")),
    ("weather", ("weather",)),
]

PARSERS: Dict[str, Type[BaseParser]] = {
    "lap_times": LapTimeParser,
    "results": ResultsParser,
    "sections": SectionParser,
    "weather": WeatherParser,
    "telemetry": TelemetryParser,
}


@dataclass
class ImportResult:
    """Result of an import run."""

    success: bool
    counts: Dict[str, int] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    files: Dict[str, List[str]] = field(default_factory=dict)
    parse_reports: List[ParseReport] = field(default_factory=list)
    load_results: List[LoadResult] = field(default_factory=list)
    rows_skipped: int = 0
    failed_source: Optional[str] = None
    error_code: Optional[str] = None
    duration_seconds: float = 0.0
    run_id: str = ""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def summary(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "counts": dict(self.counts),
            "rows_skipped": self.rows_skipped,
            "errors": list(self.errors),
            "duration_seconds": round(self.duration_seconds, 2),
        }


def discover_files(data_dir: Union[str, Path]) -> Dict[str, List[Path]]:
    """
    Group the CSV files of a directory by source.

    Matching is case-insensitive on the filename; each file belongs to the
    first source whose fragment it contains. Files are sorted by name.
    """
    found: Dict[str, List[Path]] = {source: [] for source in SOURCE_ORDER}
    for path in sorted(Path(data_dir).iterdir()):
        if not path.is_file() or path.suffix.lower() != ".csv":
            continue
        name = path.name.lower()
        for source, fragments in FILE_PATTERNS:
            if any(fragment in name for fragment in fragments):
                found[source].append(path)
                break
    return found


class ImportOrchestrator:
    """
    Run a full import of a race data directory.

    Files are processed sequentially, one transaction each. The first file
    that fails to load stops the run; files already committed stay.
    """

    def __init__(self, context: PipelineContext):
        self.context = context
        self.settings = context.settings.ingestion
        self.logger = get_logger(__name__)

        self.resolver = VehicleIdentityResolver(self.settings)
        self.loader = ReferentialLoader(
            context.engine,
            metrics=context.metrics,
            max_error_samples=self.settings.max_error_samples,
        )
        self.aggregates = AggregateStatisticsComputer(self.settings.speed_channels)

    def make_parser(self, source: str) -> BaseParser:
        return PARSERS[source](self.settings, metrics=self.context.metrics)

    def run(self, data_dir: Union[str, Path]) -> ImportResult:
        """
        Import every recognized CSV file under ``data_dir``.

        Returns:
            ImportResult; ``success`` is False when a file could not be
            imported or the directory is missing
        """
        with correlation_scope() as run_id:
            return self._run(Path(data_dir), run_id)

    def _run(self, data_path: Path, run_id: str) -> ImportResult:
        start_time = time.time()
        result = ImportResult(success=True, run_id=run_id, counts={"vehicles": 0})
        result.counts.update({source: 0 for source in SOURCE_ORDER})

        if not data_path.is_dir():
            result.success = False
            result.errors.append(f"Data directory not found: {data_path}")
            self.logger.error(result.errors[-1])
            return result

        files = discover_files(data_path)
        result.files = {source: [str(p) for p in paths] for source, paths in files.items()}
        self.logger.info(
            f"Starting import from {data_path}",
            extra={"extra_data": {source: len(paths) for source, paths in files.items()}},
        )

        if not any(files.values()):
            result.warnings.append(f"No CSV files found in {data_path}")
            self.logger.warning(result.warnings[-1])

        with self.context.engine.connect() as conn:
            if has_data(conn):
                result.warnings.append("Database already contains data; laps, telemetry, sections and weather will be appended")
                self.logger.warning(result.warnings[-1])

        loaded_any = False
        for source in SOURCE_ORDER:
            for path in files[source]:
                try:
                    self._import_file(source, path, result)
                    loaded_any = True
                except PipelineError as e:
                    result.success = False
                    result.failed_source = source
                    result.error_code = e.code
                    result.errors.append(f"{path.name}: {e}")
                    self.logger.error(
                        f"Import stopped at {path.name}",
                        exc_info=True,
                        extra={"extra_data": {"source": source, "code": e.code}},
                    )
                    break
            if not result.success:
                break

        if loaded_any:
            with self.context.engine.begin() as conn:
                self.aggregates.refresh(conn)

        result.duration_seconds = time.time() - start_time
        self.logger.info(
            "Import finished" if result.success else "Import failed",
            extra={"extra_data": result.summary()},
        )
        return result

    def _import_file(self, source: str, path: Path, result: ImportResult) -> None:
        parser = self.make_parser(source)
        report = parser.new_report(path)
        self.logger.info(f"Importing {source} file {path.name}")

        load = self.loader.load(source, parser.iter_batches(path, report), self.resolver)

        result.parse_reports.append(report)
        result.load_results.append(load)
        result.counts[source] += load.records_inserted
        result.counts["vehicles"] += load.vehicles_inserted
        result.rows_skipped += report.rows_skipped + load.records_skipped
