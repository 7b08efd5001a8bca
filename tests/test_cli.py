"""
Tests for the racing-data command line
"""

import re

import pytest
from click.testing import CliRunner

from app.cli import cli
from config.settings import get_settings


@pytest.fixture(autouse=True)
def quiet_settings(monkeypatch):
    """Fresh cached settings without console logging for each invocation."""
    monkeypatch.setenv("LOG_ENABLE_CONSOLE", "false")
    monkeypatch.delenv("DB_PATH", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def db_file(tmp_path):
    return str(tmp_path / "cli" / "racing.db")


def test_import_prints_summary(runner, race_dir, db_file):
    result = runner.invoke(cli, ["import", str(race_dir), "--db", db_file])

    assert result.exit_code == 0, result.output
    assert "Import Summary" in result.output
    assert re.search(r"Vehicles\s+1\b", result.output)
    assert re.search(r"Lap times\s+3\b", result.output)
    assert re.search(r"Telemetry records\s+2\b", result.output)


def test_import_missing_directory_fails(runner, tmp_path, db_file):
    result = runner.invoke(cli, ["import", str(tmp_path / "missing"), "--db", db_file])

    assert result.exit_code == 1
    assert "Data directory not found" in result.output


def test_import_reads_db_path_from_environment(runner, race_dir, db_file, monkeypatch):
    monkeypatch.setenv("DB_PATH", db_file)

    result = runner.invoke(cli, ["import", str(race_dir)])

    assert result.exit_code == 0, result.output
    result = runner.invoke(cli, ["stats", "--db", db_file])
    assert re.search(r"Laps\s+3\b", result.output)


def test_replay_writes_sse_frames(runner, race_dir, db_file):
    runner.invoke(cli, ["import", str(race_dir), "--db", db_file])

    result = runner.invoke(cli, ["replay", "GR86-004-78", "--speed", "10", "--db", db_file])

    assert result.exit_code == 0, result.output
    assert result.output.startswith("event: connected\n")
    assert result.output.count("event: telemetry\n") == 2
    assert "event: complete\n" in result.output


def test_replay_rejects_bad_vehicle_id(runner, db_file):
    result = runner.invoke(cli, ["replay", "car-78", "--db", db_file])

    assert result.exit_code == 1
    assert "Vehicle ID must match format" in result.output


def test_stats_recompute(runner, race_dir, db_file):
    runner.invoke(cli, ["import", str(race_dir), "--db", db_file])

    result = runner.invoke(cli, ["stats", "--db", db_file, "--recompute", "--vehicle", "GR86-004-78"])

    assert result.exit_code == 0, result.output
    assert "Race Overview" in result.output
    assert "1:37.500" in result.output
    assert "Am: 1" in result.output
    assert re.search(r"Std deviation\s+0\.615s", result.output)


def test_replay_accepts_padded_vehicle_id(runner, race_dir, db_file, monkeypatch):
    monkeypatch.setenv("IMPORT_CAR_NUMBER_WIDTH", "4")
    runner.invoke(cli, ["import", str(race_dir), "--db", db_file])

    result = runner.invoke(cli, ["replay", "GR86-004-0078", "--speed", "10", "--db", db_file])

    assert result.exit_code == 0, result.output
    assert result.output.count("event: telemetry\n") == 2
