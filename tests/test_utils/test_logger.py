"""
Tests for structured logging
"""

import json
import logging

import pytest

from app.utils.logger import (
    CorrelationIdFilter,
    JSONFormatter,
    correlation_scope,
    get_correlation_id,
    setup_logging,
)


def make_record(message="Loaded %d rows", args=(3,)):
    return logging.LogRecord("data_pipeline.loader", logging.INFO, __file__, 10, message, args, None)


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    level = root.level
    yield
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.setLevel(level)


def test_json_formatter_fields():
    record = make_record()
    record.extra_data = {"source": "lap_times", "inserted": 3}

    with correlation_scope("run-42"):
        CorrelationIdFilter().filter(record)
    payload = json.loads(JSONFormatter().format(record))

    assert payload["message"] == "Loaded 3 rows"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "data_pipeline.loader"
    assert payload["correlation_id"] == "run-42"
    assert payload["extra"] == {"source": "lap_times", "inserted": 3}
    assert payload["timestamp"].endswith("Z")


def test_default_correlation_id_outside_scope():
    record = make_record()
    CorrelationIdFilter(default_id="process").filter(record)
    assert record.correlation_id == "process"


def test_scopes_nest_and_restore():
    assert get_correlation_id() is None
    with correlation_scope("outer"):
        with correlation_scope() as inner:
            assert get_correlation_id() == inner != "outer"
        assert get_correlation_id() == "outer"
    assert get_correlation_id() is None


def test_setup_logging_writes_json_file(tmp_path, restore_root_logger):
    log_file = tmp_path / "logs" / "import.log"
    setup_logging(log_level="INFO", log_format="json", log_file=str(log_file), enable_console=False)

    with correlation_scope("run-7"):
        logging.getLogger("data_pipeline.orchestrator").info(
            "Import finished", extra={"extra_data": {"success": True}}
        )
    logging.getLogger("data_pipeline.orchestrator").debug("not written")
    for handler in logging.getLogger().handlers:
        handler.flush()

    lines = log_file.read_text(encoding="utf-8").strip().splitlines()
    assert len(lines) == 1
    payload = json.loads(lines[0])
    assert payload["message"] == "Import finished"
    assert payload["correlation_id"] == "run-7"
    assert payload["extra"] == {"success": True}
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
