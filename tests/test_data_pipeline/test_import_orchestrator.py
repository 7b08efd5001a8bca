"""
Tests for ImportOrchestrator
"""

import pytest
import sqlalchemy as sa

from data_pipeline.orchestrator import ImportOrchestrator, discover_files
from data_pipeline.storage.database import table_counts
from data_pipeline.storage.schema import (
    lap_times,
    race_results,
    section_times,
    telemetry,
    vehicles,
)


@pytest.fixture
def orchestrator(context):
    return ImportOrchestrator(context)


def test_discover_files(race_dir, write_csv):
    write_csv("notes.txt", "ignored")
    write_csv("unrelated.csv", "a,b\n1,2\n")

    files = discover_files(race_dir)

    assert [p.name for p in files["lap_times"]] == ["R1_lap_time.csv"]
    assert [p.name for p in files["telemetry"]] == ["R1_telemetry_data.csv"]
    assert [p.name for p in files["results"]] == ["03_Results GR Cup Race 1.CSV"]
    assert [p.name for p in files["sections"]] == ["23_AnalysisEnduranceWithSections_Race 1.CSV"]
    assert [p.name for p in files["weather"]] == ["26_Weather_Race 1.CSV"]


def test_full_import(context, orchestrator, race_dir):
    result = orchestrator.run(race_dir)

    assert result.success, result.errors
    assert result.counts == {
        "vehicles": 1,
        "lap_times": 3,
        "results": 1,
        "sections": 1,
        "weather": 1,
        "telemetry": 2,
    }
    assert result.rows_skipped == 0

    with context.engine.connect() as conn:
        assert table_counts(conn)["telemetry"] == 2
        car = conn.execute(sa.select(vehicles)).mappings().one()

    assert car["vehicle_id"] == "GR86-004-78"
    assert car["car_number"] == 78
    assert car["total_laps"] == 3
    assert car["fastest_lap"] == 97500
    assert car["max_speed"] == 180.5
    assert car["position"] == 1
    assert car["class"] == "Am"


def test_no_orphan_rows(context, orchestrator, race_dir):
    orchestrator.run(race_dir)

    known = sa.select(vehicles.c.vehicle_id)
    with context.engine.connect() as conn:
        for table in (lap_times, telemetry, race_results, section_times):
            orphans = conn.execute(
                sa.select(sa.func.count()).select_from(table).where(table.c.vehicle_id.not_in(known))
            ).scalar_one()
            assert orphans == 0, table.name


def test_missing_directory(orchestrator, tmp_path):
    result = orchestrator.run(tmp_path / "nowhere")

    assert not result.success
    assert "not found" in result.errors[0]


def test_empty_directory_warns(orchestrator, tmp_path):
    empty = tmp_path / "empty"
    empty.mkdir()

    result = orchestrator.run(empty)

    assert result.success
    assert any("No CSV files" in warning for warning in result.warnings)


def test_reimport_warns_and_keeps_results_unique(context, race_dir):
    ImportOrchestrator(context).run(race_dir)
    second = ImportOrchestrator(context).run(race_dir)

    assert second.success
    assert any("already contains data" in warning for warning in second.warnings)
    assert second.counts["vehicles"] == 0
    assert second.counts["results"] == 0
    assert second.counts["lap_times"] == 3


def test_failed_file_stops_the_run(context, orchestrator, race_dir, write_csv):
    write_csv("R2_telemetry_data.csv", "vehicle_id,timestamp\nGR86-004-78,2025-04-27T14:00:00Z\n")

    result = orchestrator.run(race_dir)

    assert not result.success
    assert result.failed_source == "telemetry"
    assert result.error_code == "PARSE_ERROR"
    # files before the failure stay committed
    assert result.counts["lap_times"] == 3
    with context.engine.connect() as conn:
        assert table_counts(conn)["lap_times"] == 3


def test_skipped_rows_are_reported(orchestrator, write_csv):
    write_csv("R1_lap_time.csv", (
        "vehicle_number,lap,value\n"
        "78,1,98000\n"
        "78,2,not-a-time\n"
        ",3,97000\n"
    ))
    data_dir = write_csv("R1_telemetry_data.csv", (
        "vehicle_number,timestamp,telemetry_name,telemetry_value\n"
        "78,2025-04-27T14:00:00Z,vCar,150\n"
    )).parent

    result = orchestrator.run(data_dir)

    assert result.success
    assert result.counts["lap_times"] == 1
    assert result.counts["telemetry"] == 1
    # one unparseable row, one row without identity
    assert result.rows_skipped == 2
