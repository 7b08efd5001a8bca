"""
Tests for the telemetry stream endpoint and health check
"""

import json

import pytest
from fastapi.testclient import TestClient

from api.main import create_app


VEHICLE = "GR86-004-78"


@pytest.fixture
def client(context):
    """Test client over the temporary store (lifespan runs inside the block)."""
    with TestClient(create_app(context)) as test_client:
        yield test_client


def parse_frames(body):
    frames = []
    for block in body.strip().split("\n\n"):
        event_line, data_line = block.split("\n")
        assert event_line.startswith("event: ")
        assert data_line.startswith("data: ")
        frames.append((event_line[len("event: "):], json.loads(data_line[len("data: "):])))
    return frames


def test_stream_replays_in_order(client, seed):
    seed([
        {"vehicle_id": VEHICLE, "lap": 1, "timestamp": "2025-04-27T14:00:00.002Z",
         "telemetry_name": "aps", "telemetry_value": 95.0},
        {"vehicle_id": VEHICLE, "lap": 1, "timestamp": "2025-04-27T14:00:00.001Z",
         "telemetry_name": "vCar", "telemetry_value": 180.5},
        {"vehicle_id": VEHICLE, "lap": 2, "timestamp": "2025-04-27T14:01:40.000Z",
         "telemetry_name": "vCar", "telemetry_value": 182.0},
    ])

    response = client.get(f"/api/telemetry/stream/{VEHICLE}", params={"playbackSpeed": 10, "lap": 1})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.headers["cache-control"] == "no-cache"

    frames = parse_frames(response.text)
    assert [kind for kind, _ in frames] == ["connected", "telemetry", "telemetry", "complete"]
    assert frames[0][1] == {"vehicleId": VEHICLE, "lap": 1, "playbackSpeed": 10.0}
    assert [data["telemetry_name"] for _, data in frames[1:3]] == ["vCar", "aps"]
    assert frames[1][1]["timestamp"] == "2025-04-27T14:00:00.001Z"
    assert frames[-1][1] == {"message": "Stream completed"}


def test_stream_channel_filter(client, seed):
    seed([
        {"vehicle_id": VEHICLE, "timestamp": "2025-04-27T14:00:00.001Z",
         "telemetry_name": "vCar", "telemetry_value": 180.5},
        {"vehicle_id": VEHICLE, "timestamp": "2025-04-27T14:00:00.002Z",
         "telemetry_name": "aps", "telemetry_value": 95.0},
    ])

    response = client.get(
        f"/api/telemetry/stream/{VEHICLE}",
        params={"playbackSpeed": 10, "telemetryNames": "aps"},
    )

    frames = parse_frames(response.text)
    assert [data["telemetry_name"] for kind, data in frames if kind == "telemetry"] == ["aps"]


def test_unknown_vehicle_streams_nothing(client):
    response = client.get("/api/telemetry/stream/GR86-004-1234")

    assert response.status_code == 200
    assert [kind for kind, _ in parse_frames(response.text)] == ["connected", "complete"]


@pytest.mark.parametrize("path,params", [
    ("/api/telemetry/stream/car78", {}),
    ("/api/telemetry/stream/GR86-4-78", {}),
    ("/api/telemetry/stream/GR86-002-78", {}),
    (f"/api/telemetry/stream/{VEHICLE}", {"playbackSpeed": 100}),
    (f"/api/telemetry/stream/{VEHICLE}", {"playbackSpeed": 0}),
    (f"/api/telemetry/stream/{VEHICLE}", {"playbackSpeed": "fast"}),
    (f"/api/telemetry/stream/{VEHICLE}", {"lap": -1}),
])
def test_invalid_requests_are_rejected(client, path, params):
    response = client.get(path, params=params)

    assert response.status_code == 422
    assert response.json()["error_code"] == "validation_error"


def test_health(client):
    response = client.get("/health", headers={"X-Correlation-ID": "test-123"})

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["components"]["database"]["status"] == "healthy"
    assert body["components"]["database"]["message"] == "schema v1"
    assert response.headers["X-Correlation-ID"] == "test-123"
