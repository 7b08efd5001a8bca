"""Shared fixtures: isolated settings, metrics, a temporary store and sample race files."""

from pathlib import Path
from typing import Dict, Iterable, List

import pytest
import sqlalchemy as sa
from prometheus_client import CollectorRegistry

from app.context import PipelineContext
from config.settings import ImportSettings, LoggingSettings, ReplaySettings, Settings
from data_pipeline.storage.schema import telemetry, vehicles
from data_pipeline.utils.metrics import PipelineMetrics


LAP_TIMES_CSV = """vehicle_id,vehicle_number,lap,value,timestamp
GR86-002-78,78,1,98123,2025-04-27T14:00:00.000Z
GR86-002-78,78,2,97500,2025-04-27T14:01:37.500Z
GR86-002-78,78,3,99000,2025-04-27T14:03:16.500Z
"""

TELEMETRY_CSV = """vehicle_id,vehicle_number,lap,timestamp,telemetry_name,telemetry_value
GR86-002-78,78,1,2025-04-27T14:00:00.200Z,aps,95.0
GR86-002-78,78,1,2025-04-27T14:00:00.100Z,vCar,180.5
"""

RESULTS_CSV = "\ufeff" + """POSITION;NUMBER;LAPS;TOTAL_TIME;GAP_FIRST;FL_TIME;CLASS
1;78;3;4:54.623;-;1:37.500;Am
"""

WEATHER_CSV = """TIME_UTC_SECONDS;TIME_UTC_STR;AIR_TEMP;TRACK_TEMP;HUMIDITY;PRESSURE;WIND_SPEED;WIND_DIRECTION;RAIN
1745762400;4/27/2025 2:00:00 PM;25.1;38.2;55;1012;3.2;180;0
"""

SECTIONS_CSV = """NUMBER;LAP_NUMBER;LAP_TIME;S1;S2;S3;TOP_SPEED
78;1;1:38.123;26.5;40.1;31.523;182.3
"""


@pytest.fixture
def settings():
    """Settings with small batches and pages so paging paths are exercised."""
    return Settings(
        env="testing",
        ingestion=ImportSettings(batch_size=2),
        replay=ReplaySettings(page_size=2, min_delay_ms=1.0),
        logging=LoggingSettings(level="WARNING", enable_console=False),
    )


@pytest.fixture
def metrics():
    """Metrics bound to a private registry."""
    return PipelineMetrics(registry=CollectorRegistry())


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "store" / "racing.db"


@pytest.fixture
def context(settings, metrics, db_path):
    """Pipeline context over a fresh SQLite file."""
    ctx = PipelineContext.create(settings, database_url=str(db_path), metrics=metrics)
    yield ctx
    ctx.close()


@pytest.fixture
def write_csv(tmp_path):
    """Write a CSV file into the sample data directory and return its path."""
    data_dir = tmp_path / "data"
    data_dir.mkdir(exist_ok=True)

    def _write(name: str, content: str) -> Path:
        path = data_dir / name
        path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def race_dir(write_csv):
    """A race directory with one file per source for car 78."""
    write_csv("R1_lap_time.csv", LAP_TIMES_CSV)
    write_csv("R1_telemetry_data.csv", TELEMETRY_CSV)
    write_csv("03_Results GR Cup Race 1.CSV", RESULTS_CSV)
    write_csv("26_Weather_Race 1.CSV", WEATHER_CSV)
    path = write_csv("23_AnalysisEnduranceWithSections_Race 1.CSV", SECTIONS_CSV)
    return path.parent


def seed_telemetry(engine, samples: Iterable[Dict]) -> None:
    """
    Insert vehicles and telemetry rows directly.

    Each sample needs vehicle_id, timestamp, telemetry_name, telemetry_value
    and optionally lap.
    """
    samples = list(samples)
    vehicle_ids: List[str] = sorted({sample["vehicle_id"] for sample in samples})
    with engine.begin() as conn:
        for vehicle_id in vehicle_ids:
            exists = conn.execute(
                sa.select(vehicles.c.vehicle_id).where(vehicles.c.vehicle_id == vehicle_id)
            ).first()
            if exists is None:
                conn.execute(vehicles.insert().values(
                    vehicle_id=vehicle_id,
                    car_number=int(vehicle_id.rsplit("-", 1)[-1]),
                ))
        if samples:
            conn.execute(telemetry.insert(), [{"lap": None, **sample} for sample in samples])


@pytest.fixture
def seed(context):
    """Seed telemetry into the context's store."""

    def _seed(samples: Iterable[Dict]) -> None:
        seed_telemetry(context.engine, samples)

    return _seed


@pytest.fixture
def sample_csv():
    """Raw file bodies of the sample race, keyed by source."""
    return {
        "lap_times": LAP_TIMES_CSV,
        "telemetry": TELEMETRY_CSV,
        "results": RESULTS_CSV,
        "weather": WEATHER_CSV,
        "sections": SECTIONS_CSV,
    }
