"""
Telemetry page reader - keyset pagination over (timestamp, id)

Each page is read on a short-lived connection, so no cursor stays open
between pages and rows appended while a replay runs are picked up in order.
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple

import sqlalchemy as sa
from sqlalchemy.engine import Engine

from data_pipeline.storage.schema import telemetry


Cursor = Tuple[str, int]


class TelemetryPageReader:
    """
    Read one vehicle's telemetry in chronological pages.

    Args:
        engine: Database engine
        vehicle_id: Vehicle whose telemetry is read
        lap: Restrict to one lap
        telemetry_names: Restrict to these channels
        page_size: Rows per page
    """

    def __init__(
        self,
        engine: Engine,
        vehicle_id: str,
        lap: Optional[int] = None,
        telemetry_names: Optional[Sequence[str]] = None,
        page_size: int = 100,
    ):
        self.engine = engine
        self.vehicle_id = vehicle_id
        self.lap = lap
        self.telemetry_names = list(telemetry_names) if telemetry_names else None
        self.page_size = page_size

    def _base_query(self):
        query = sa.select(
            telemetry.c.id,
            telemetry.c.vehicle_id,
            telemetry.c.lap,
            telemetry.c.timestamp,
            telemetry.c.telemetry_name,
            telemetry.c.telemetry_value,
        ).where(telemetry.c.vehicle_id == self.vehicle_id)

        if self.lap is not None:
            query = query.where(telemetry.c.lap == self.lap)
        if self.telemetry_names:
            query = query.where(telemetry.c.telemetry_name.in_(self.telemetry_names))
        return query

    def fetch_page(self, after: Optional[Cursor] = None) -> List[Dict[str, Any]]:
        """
        Fetch the next page strictly after ``after`` in (timestamp, id) order.

        Args:
            after: (timestamp, id) of the last row already read

        Returns:
            Up to ``page_size`` rows as dicts, empty when exhausted
        """
        query = self._base_query()
        if after is not None:
            last_timestamp, last_id = after
            query = query.where(
                sa.or_(
                    telemetry.c.timestamp > last_timestamp,
                    sa.and_(telemetry.c.timestamp == last_timestamp, telemetry.c.id > last_id),
                )
            )
        query = query.order_by(telemetry.c.timestamp.asc(), telemetry.c.id.asc()).limit(self.page_size)

        with self.engine.connect() as conn:
            return [dict(row) for row in conn.execute(query).mappings()]

    @staticmethod
    def cursor_of(row: Dict[str, Any]) -> Cursor:
        return row["timestamp"], row["id"]
