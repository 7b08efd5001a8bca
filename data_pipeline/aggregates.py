"""
Aggregate Statistics Computer - Derived vehicle summary fields

The stored summary (fastest/average lap, lap count, max speed, position and
class) is refreshed with set-based SQL after an import. The same numbers can
be re-derived from raw rows with numpy to check the stored values.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence

import numpy as np
import sqlalchemy as sa
from sqlalchemy.engine import Connection

from app.utils.logger import get_logger
from data_pipeline.storage.schema import lap_times, race_results, telemetry, vehicles


DEFAULT_SPEED_CHANNELS = ("vCar", "speed_can", "speed")


@dataclass
class LapStatistics:
    """Summary statistics over a set of lap times (milliseconds)."""

    count: int
    fastest: Optional[float]
    slowest: Optional[float]
    average: Optional[float]
    std_dev: Optional[float]


@dataclass
class VehicleSummary:
    vehicle_id: str
    fastest_lap: Optional[float]
    average_lap: Optional[float]
    total_laps: int
    max_speed: Optional[float]
    position: Optional[int]
    vehicle_class: Optional[str]


def lap_statistics(values: Iterable[float]) -> LapStatistics:
    """
    Compute count, fastest, slowest, mean and population standard deviation.

    Args:
        values: Lap times in milliseconds

    Returns:
        LapStatistics (all None except count when there are no laps)

    Examples:
        >>> lap_statistics([90000, 92000, 94000]).std_dev
        1632.993161855452
    """
    data = np.asarray(list(values), dtype=float)
    if data.size == 0:
        return LapStatistics(count=0, fastest=None, slowest=None, average=None, std_dev=None)

    return LapStatistics(
        count=int(data.size),
        fastest=float(data.min()),
        slowest=float(data.max()),
        average=float(data.mean()),
        std_dev=float(data.std(ddof=0)),
    )


class AggregateStatisticsComputer:
    """
    Compute and persist the derived fields of the vehicles table.

    Args:
        speed_channels: Telemetry channel names that carry vehicle speed
    """

    def __init__(self, speed_channels: Optional[Sequence[str]] = None):
        self.speed_channels = list(speed_channels or DEFAULT_SPEED_CHANNELS)
        self.logger = get_logger(__name__)

    def refresh(self, conn: Connection, vehicle_ids: Optional[Iterable[str]] = None) -> int:
        """
        Recompute the summary fields in one set-based UPDATE.

        Position and class are carried over from race results when a result
        exists. A vehicle without laps gets ``total_laps = 0`` and null lap
        statistics.

        Args:
            conn: Open connection (caller controls the transaction)
            vehicle_ids: Restrict the update to these vehicles (default all)

        Returns:
            Number of vehicle rows updated
        """
        vid = vehicles.c.vehicle_id

        laps_for_vehicle = lap_times.c.vehicle_id == vid
        fastest = sa.select(sa.func.min(lap_times.c.lap_time)).where(laps_for_vehicle).scalar_subquery()
        average = sa.select(sa.func.avg(lap_times.c.lap_time)).where(laps_for_vehicle).scalar_subquery()
        total = sa.select(sa.func.count(lap_times.c.id)).where(laps_for_vehicle).scalar_subquery()

        max_speed = (
            sa.select(sa.func.max(telemetry.c.telemetry_value))
            .where(telemetry.c.vehicle_id == vid)
            .where(telemetry.c.telemetry_name.in_(self.speed_channels))
            .scalar_subquery()
        )

        result_for_vehicle = race_results.c.vehicle_id == vid
        position = sa.select(race_results.c.position).where(result_for_vehicle).scalar_subquery()
        result_class = sa.select(race_results.c["class"]).where(result_for_vehicle).scalar_subquery()

        stmt = vehicles.update().values({
            "fastest_lap": fastest,
            "average_lap": average,
            "total_laps": total,
            "max_speed": max_speed,
            "position": sa.func.coalesce(position, vehicles.c.position),
            "class": sa.func.coalesce(result_class, vehicles.c["class"]),
        })

        if vehicle_ids is not None:
            ids = list(vehicle_ids)
            if not ids:
                return 0
            stmt = stmt.where(vid.in_(ids))

        updated = conn.execute(stmt).rowcount
        self.logger.info(
            f"Refreshed summary statistics for {updated} vehicles",
            extra={"extra_data": {"speed_channels": self.speed_channels}},
        )
        return updated

    def compute_vehicle_summary(self, conn: Connection, vehicle_id: str) -> VehicleSummary:
        """
        Re-derive one vehicle's summary from raw rows.

        Uses numpy over the fetched lap and speed values, independent of the
        SQL refresh, so the two can be compared.
        """
        laps = conn.execute(
            sa.select(lap_times.c.lap_time).where(lap_times.c.vehicle_id == vehicle_id)
        ).scalars().all()
        stats = lap_statistics(laps)

        speeds = np.asarray(
            conn.execute(
                sa.select(telemetry.c.telemetry_value)
                .where(telemetry.c.vehicle_id == vehicle_id)
                .where(telemetry.c.telemetry_name.in_(self.speed_channels))
            ).scalars().all(),
            dtype=float,
        )

        result = conn.execute(
            sa.select(race_results.c.position, race_results.c["class"])
            .where(race_results.c.vehicle_id == vehicle_id)
        ).first()

        return VehicleSummary(
            vehicle_id=vehicle_id,
            fastest_lap=stats.fastest,
            average_lap=stats.average,
            total_laps=stats.count,
            max_speed=float(speeds.max()) if speeds.size else None,
            position=result[0] if result else None,
            vehicle_class=result[1] if result else None,
        )

    def get_lap_statistics(
        self,
        conn: Connection,
        vehicle_id: str,
        min_lap: Optional[int] = None,
        max_lap: Optional[int] = None,
    ) -> LapStatistics:
        """Lap statistics for one vehicle, optionally within a lap range."""
        query = sa.select(lap_times.c.lap_time).where(lap_times.c.vehicle_id == vehicle_id)
        if min_lap is not None:
            query = query.where(lap_times.c.lap >= min_lap)
        if max_lap is not None:
            query = query.where(lap_times.c.lap <= max_lap)
        return lap_statistics(conn.execute(query).scalars().all())

    def overview(self, conn: Connection) -> Dict[str, Any]:
        """Race-wide totals for reporting."""
        vehicle_count = conn.execute(sa.select(sa.func.count()).select_from(vehicles)).scalar_one()
        lap_count = conn.execute(sa.select(sa.func.count()).select_from(lap_times)).scalar_one()
        telemetry_count = conn.execute(sa.select(sa.func.count()).select_from(telemetry)).scalar_one()

        fastest_lap = conn.execute(sa.select(sa.func.min(vehicles.c.fastest_lap))).scalar()
        mean_average = conn.execute(sa.select(sa.func.avg(vehicles.c.average_lap))).scalar()
        max_speed = conn.execute(sa.select(sa.func.max(vehicles.c.max_speed))).scalar()

        class_rows = conn.execute(
            sa.select(vehicles.c["class"], sa.func.count())
            .group_by(vehicles.c["class"])
            .order_by(vehicles.c["class"])
        ).all()
        class_distribution = {
            (vehicle_class if vehicle_class is not None else "unknown"): count
            for vehicle_class, count in class_rows
        }

        fastest_vehicle = None
        if fastest_lap is not None:
            fastest_vehicle = conn.execute(
                sa.select(vehicles.c.vehicle_id)
                .where(vehicles.c.fastest_lap == fastest_lap)
                .order_by(vehicles.c.vehicle_id)
                .limit(1)
            ).scalar()

        return {
            "total_vehicles": vehicle_count,
            "total_laps": lap_count,
            "total_telemetry": telemetry_count,
            "fastest_lap": fastest_lap,
            "fastest_vehicle": fastest_vehicle,
            "average_lap": mean_average,
            "max_speed": max_speed,
            "class_distribution": class_distribution,
        }

    def verify(self, conn: Connection, tolerance: float = 0.01) -> List[str]:
        """
        Compare stored summaries with a fresh re-derivation.

        Returns:
            Vehicle ids whose stored fields disagree
        """
        mismatched = []
        rows = conn.execute(sa.select(vehicles)).mappings().all()
        for row in rows:
            summary = self.compute_vehicle_summary(conn, row["vehicle_id"])
            if (row["total_laps"] or 0) != summary.total_laps:
                mismatched.append(row["vehicle_id"])
                continue
            for stored, derived in (
                (row["fastest_lap"], summary.fastest_lap),
                (row["average_lap"], summary.average_lap),
                (row["max_speed"], summary.max_speed),
            ):
                if (stored is None) != (derived is None) or (
                    stored is not None and abs(stored - derived) > tolerance
                ):
                    mismatched.append(row["vehicle_id"])
                    break
        return mismatched
