"""
Referential Loader - Writes parsed records with referential integrity

Each source file is written in one transaction: for every batch the vehicle
identities it references are inserted (insert-or-ignore) before the batch's
dependent rows, which go in with a single executemany.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional
import time

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.engine import Engine
from pydantic import BaseModel

from app.utils.logger import get_logger
from data_pipeline.errors import DataImportError, IdentityError
from data_pipeline.identity import VehicleIdentityResolver
from data_pipeline.storage.database import count_rows, insert_ignore
from data_pipeline.storage.schema import (
    lap_times,
    race_results,
    section_times,
    telemetry,
    vehicles,
    weather,
)
from data_pipeline.utils.metrics import PipelineMetrics, pipeline_metrics


@dataclass
class LoadResult:
    """Outcome of loading one source file."""

    source: str
    records_inserted: int = 0
    records_submitted: int = 0
    records_skipped: int = 0
    vehicles_inserted: int = 0
    duration_seconds: float = 0.0
    errors: List[str] = field(default_factory=list)


def _lap_row(record, vehicle_id: str, car_number: Optional[int]) -> Dict[str, Any]:
    return {
        "vehicle_id": vehicle_id,
        "lap": record.lap,
        "lap_time": record.lap_time,
        "timestamp": record.timestamp,
    }


def _telemetry_row(record, vehicle_id: str, car_number: Optional[int]) -> Dict[str, Any]:
    return {
        "vehicle_id": vehicle_id,
        "lap": record.lap,
        "timestamp": record.timestamp,
        "telemetry_name": record.telemetry_name,
        "telemetry_value": record.telemetry_value,
    }


def _result_row(record, vehicle_id: str, car_number: Optional[int]) -> Dict[str, Any]:
    return {
        "vehicle_id": vehicle_id,
        "position": record.position,
        "car_number": car_number,
        "laps": record.laps,
        "total_time": record.total_time,
        "gap_first": record.gap_first,
        "gap_previous": record.gap_previous,
        "best_lap_time": record.best_lap_time,
        "class": record.vehicle_class,
    }


def _section_row(record, vehicle_id: str, car_number: Optional[int]) -> Dict[str, Any]:
    return {
        "vehicle_id": vehicle_id,
        "lap": record.lap,
        "s1": record.s1,
        "s2": record.s2,
        "s3": record.s3,
        "lap_time": record.lap_time,
        "top_speed": record.top_speed,
    }


def _weather_row(record, vehicle_id: Optional[str], car_number: Optional[int]) -> Dict[str, Any]:
    return record.model_dump()


@dataclass(frozen=True)
class SourceTarget:
    """Where and how a source's records are written."""

    table: sa.Table
    to_row: Callable[..., Dict[str, Any]]
    vehicle_keyed: bool = True
    ignore_duplicates: bool = False


SOURCE_TARGETS: Dict[str, SourceTarget] = {
    "lap_times": SourceTarget(lap_times, _lap_row),
    "telemetry": SourceTarget(telemetry, _telemetry_row),
    "results": SourceTarget(race_results, _result_row, ignore_duplicates=True),
    "sections": SourceTarget(section_times, _section_row),
    "weather": SourceTarget(weather, _weather_row, vehicle_keyed=False),
}


class ReferentialLoader:
    """
    Load batches of parsed records into the relational store.

    Guarantees:
    - a vehicle row exists before any row that references it
    - one transaction per source file (all or nothing)
    - append tables count every row they execute (a plain insert stores the
      whole batch or fails the file); insert-or-ignore tables count the
      row-count delta seen inside the transaction
    """

    def __init__(
        self,
        engine: Engine,
        metrics: Optional[PipelineMetrics] = None,
        max_error_samples: int = 20,
    ):
        self.engine = engine
        self.metrics = metrics or pipeline_metrics
        self.max_error_samples = max_error_samples
        self.logger = get_logger(__name__)

    def load(
        self,
        source: str,
        batches: Iterable[List[BaseModel]],
        resolver: VehicleIdentityResolver,
    ) -> LoadResult:
        """
        Write all batches of one source file in a single transaction.

        Args:
            source: Source name ('lap_times', 'telemetry', 'results', 'sections', 'weather')
            batches: Batches of parsed records (consumed lazily)
            resolver: Identity resolver shared across the import run

        Returns:
            LoadResult with inserted counts

        Raises:
            DataImportError: If the store rejects the file (rolled back)
            ParseError: If the batch source fails mid-file (rolled back)
        """
        if source not in SOURCE_TARGETS:
            raise ValueError(f"Unknown source: {source}")

        target = SOURCE_TARGETS[source]
        result = LoadResult(source=source)
        marked: List[str] = []
        start_time = time.time()

        try:
            with self.engine.begin() as conn:
                rows_before = count_rows(conn, target.table) if target.ignore_duplicates else 0
                vehicles_before = count_rows(conn, vehicles)

                for batch in batches:
                    rows = self._build_rows(target, batch, resolver, result)

                    if target.vehicle_keyed:
                        marked.extend(self._write_vehicles(conn, resolver))

                    if rows:
                        if target.ignore_duplicates:
                            conn.execute(insert_ignore(conn, target.table), rows)
                        else:
                            conn.execute(target.table.insert(), rows)
                            result.records_inserted += len(rows)
                        result.records_submitted += len(rows)

                if target.ignore_duplicates:
                    result.records_inserted = count_rows(conn, target.table) - rows_before
                result.vehicles_inserted = count_rows(conn, vehicles) - vehicles_before
        except SQLAlchemyError as e:
            resolver.forget_written(marked)
            self.metrics.record_error(source, "import")
            self.logger.error(
                f"Import of {source} rolled back: {e}",
                extra={"extra_data": {"source": source, "submitted": result.records_submitted}},
            )
            raise DataImportError(
                f"Failed to import {source}: {e}",
                source=source,
                details={"submitted": result.records_submitted},
            ) from e
        except Exception:
            resolver.forget_written(marked)
            raise

        result.duration_seconds = time.time() - start_time
        self.metrics.record_import(source, result.records_inserted, result.duration_seconds)
        self.metrics.record_vehicles(result.vehicles_inserted)
        self.metrics.record_error(source, "identity", result.records_skipped)

        self.logger.info(
            f"Loaded {result.records_inserted} {source} rows",
            extra={"extra_data": {
                "source": source,
                "inserted": result.records_inserted,
                "vehicles_inserted": result.vehicles_inserted,
                "skipped": result.records_skipped,
                "duration": f"{result.duration_seconds:.2f}s",
            }},
        )
        return result

    def _build_rows(
        self,
        target: SourceTarget,
        batch: List[BaseModel],
        resolver: VehicleIdentityResolver,
        result: LoadResult,
    ) -> List[Dict[str, Any]]:
        rows = []
        for record in batch:
            vehicle_id = None
            car_number = None
            if target.vehicle_keyed:
                try:
                    vehicle_id = resolver.resolve_record(record)
                except IdentityError as e:
                    result.records_skipped += 1
                    if len(result.errors) < self.max_error_samples:
                        result.errors.append(str(e))
                    continue
                car_number = resolver.car_number_of(vehicle_id)
            rows.append(target.to_row(record, vehicle_id, car_number))
        return rows

    def _write_vehicles(self, conn, resolver: VehicleIdentityResolver) -> List[str]:
        """Insert-or-ignore identities not yet written in this run."""
        pending = resolver.new_identities()
        if not pending:
            return []

        conn.execute(
            insert_ignore(conn, vehicles),
            [{"vehicle_id": vehicle_id, "car_number": car_number} for vehicle_id, car_number in pending],
        )
        written = [vehicle_id for vehicle_id, _ in pending]
        resolver.mark_written(written)
        return written
