"""
Tests for the replay scheduler and sessions
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from replay.events import EventKind, ReplayEvent, complete_event, error_event
from replay.reader import TelemetryPageReader
from replay.scheduler import (
    CancellationToken,
    ReplayRequest,
    ReplayScheduler,
    ReplaySession,
    ReplayState,
)


VEHICLE = "GR86-004-78"


def sample(timestamp, name="vCar", value=150.0, lap=1, vehicle_id=VEHICLE):
    return {
        "vehicle_id": vehicle_id,
        "lap": lap,
        "timestamp": timestamp,
        "telemetry_name": name,
        "telemetry_value": value,
    }


@pytest.fixture
def scheduler(context):
    return ReplayScheduler(context.engine, settings=context.settings.replay, metrics=context.metrics)


async def collect(session):
    return [event async for event in session.events()]


def kinds(events):
    return [event.kind for event in events]


@pytest.mark.asyncio
async def test_events_are_chronological_across_pages(scheduler, seed):
    """Out-of-order inserts come back by (timestamp, id) over several pages."""
    seed([
        sample("2025-04-27T14:00:00.004Z", value=4),
        sample("2025-04-27T14:00:00.001Z", value=1),
        sample("2025-04-27T14:00:00.003Z", value=3),
        sample("2025-04-27T14:00:00.002Z", name="aps", value=2),
        sample("2025-04-27T14:00:00.002Z", name="vCar", value=2.5),
    ])

    session = scheduler.create_session(ReplayRequest(vehicle_id=VEHICLE, playback_speed=10))
    events = await collect(session)

    assert kinds(events) == [EventKind.CONNECTED] + [EventKind.TELEMETRY] * 5 + [EventKind.COMPLETE]
    values = [event.data["telemetry_value"] for event in events[1:-1]]
    assert values == [1, 2, 2.5, 3, 4]
    assert session.state == ReplayState.COMPLETED
    assert events[0].data == {"vehicleId": VEHICLE, "lap": None, "playbackSpeed": 10.0}


@pytest.mark.asyncio
async def test_lap_and_channel_filters(scheduler, seed):
    seed([
        sample("2025-04-27T14:00:00.000Z", lap=1),
        sample("2025-04-27T14:01:40.000Z", lap=2),
        sample("2025-04-27T14:01:40.001Z", name="aps", lap=2),
    ])

    request = ReplayRequest(vehicle_id=VEHICLE, lap=2, telemetry_names="vCar", playback_speed=10)
    events = await collect(scheduler.create_session(request))

    telemetry = [event.data for event in events if event.kind == EventKind.TELEMETRY]
    assert len(telemetry) == 1
    assert telemetry[0]["lap"] == 2
    assert telemetry[0]["telemetry_name"] == "vCar"


@pytest.mark.asyncio
async def test_vehicle_without_telemetry_completes(scheduler):
    events = await collect(scheduler.create_session(ReplayRequest(vehicle_id="GR86-004-99")))

    assert kinds(events) == [EventKind.CONNECTED, EventKind.COMPLETE]


@pytest.mark.asyncio
async def test_delays_are_scaled_by_playback_speed(scheduler, seed):
    seed([
        sample("2025-04-27T14:00:00.000Z"),
        sample("2025-04-27T14:00:00.200Z"),
        sample("2025-04-27T14:00:00.200Z", name="aps"),
        sample("2025-04-27T14:00:01.000Z"),
    ])

    session = scheduler.create_session(ReplayRequest(vehicle_id=VEHICLE, playback_speed=2))
    session.token.sleep = AsyncMock(return_value=False)
    events = await collect(session)

    assert kinds(events).count(EventKind.TELEMETRY) == 4
    # equal timestamps do not suspend
    delays = [call.args[0] for call in session.token.sleep.await_args_list]
    assert delays == pytest.approx([0.1, 0.4])


@pytest.mark.asyncio
async def test_real_time_spacing(scheduler, seed):
    seed([
        sample("2025-04-27T14:00:00.000Z"),
        sample("2025-04-27T14:00:00.300Z"),
    ])

    session = scheduler.create_session(ReplayRequest(vehicle_id=VEHICLE, playback_speed=2))
    loop = asyncio.get_running_loop()
    start = loop.time()
    await collect(session)

    elapsed = loop.time() - start
    # 300 ms of data at 2x is 150 ms; allow 50% plus fixed setup overhead
    assert 0.14 <= elapsed < 0.15 * 1.5 + 0.1


@pytest.mark.asyncio
async def test_cancel_mid_stream_emits_no_terminal_event(scheduler, seed):
    seed([sample(f"2025-04-27T14:00:0{i}.000Z") for i in range(5)])

    session = scheduler.create_session(ReplayRequest(vehicle_id=VEHICLE, playback_speed=10))
    events = []
    async for event in session.events():
        events.append(event)
        if event.kind == EventKind.TELEMETRY:
            session.cancel()

    assert kinds(events) == [EventKind.CONNECTED, EventKind.TELEMETRY]
    assert session.state == ReplayState.ABORTED


@pytest.mark.asyncio
async def test_cancel_during_sleep_wakes_immediately(scheduler, seed):
    seed([
        sample("2025-04-27T14:00:00.000Z"),
        sample("2025-04-27T14:01:00.000Z"),
    ])

    session = scheduler.create_session(ReplayRequest(vehicle_id=VEHICLE, playback_speed=1))
    loop = asyncio.get_running_loop()
    loop.call_later(0.05, session.cancel)
    start = loop.time()
    events = await collect(session)

    assert loop.time() - start < 5
    assert not any(event.is_terminal for event in events)
    assert session.state == ReplayState.ABORTED


@pytest.mark.asyncio
async def test_cancelled_before_start(scheduler):
    token = CancellationToken()
    token.cancel()
    session = scheduler.create_session(ReplayRequest(vehicle_id=VEHICLE), token=token)

    events = await collect(session)

    assert kinds(events) == [EventKind.CONNECTED]
    assert session.state == ReplayState.ABORTED


def failing_reader(pages):
    reader = MagicMock(spec=TelemetryPageReader)
    reader.page_size = 2
    reader.fetch_page.side_effect = pages
    reader.cursor_of.side_effect = TelemetryPageReader.cursor_of
    return reader


@pytest.mark.asyncio
async def test_read_failure_emits_one_error(settings, metrics):
    reader = failing_reader([RuntimeError("disk gone")])
    session = ReplaySession(
        ReplayRequest(vehicle_id=VEHICLE), reader, playback_speed=1.0,
        settings=settings.replay, metrics=metrics,
    )

    events = await collect(session)

    assert kinds(events) == [EventKind.CONNECTED, EventKind.ERROR]
    assert events[-1].data == {"error": "Failed to read telemetry: disk gone"}
    assert session.state == ReplayState.ERRORED


@pytest.mark.asyncio
async def test_failure_after_first_page(settings, metrics):
    page = [
        dict(sample("2025-04-27T14:00:00.000Z"), id=1),
        dict(sample("2025-04-27T14:00:00.000Z", name="aps"), id=2),
    ]
    reader = failing_reader([page, RuntimeError("connection reset")])
    session = ReplaySession(
        ReplayRequest(vehicle_id=VEHICLE), reader, playback_speed=1.0,
        settings=settings.replay, metrics=metrics,
    )

    events = await collect(session)

    assert kinds(events) == [EventKind.CONNECTED, EventKind.TELEMETRY, EventKind.TELEMETRY, EventKind.ERROR]
    assert reader.fetch_page.call_args_list[1].args == (("2025-04-27T14:00:00.000Z", 2),)


@pytest.mark.asyncio
async def test_sessions_are_independent(scheduler, seed):
    seed([sample(f"2025-04-27T14:00:00.00{i}Z", value=i) for i in range(3)])
    seed([sample(f"2025-04-27T14:00:00.00{i}Z", value=10 + i, vehicle_id="GR86-004-13") for i in range(4)])

    first = scheduler.create_session(ReplayRequest(vehicle_id=VEHICLE, playback_speed=10))
    second = scheduler.create_session(ReplayRequest(vehicle_id="GR86-004-13", playback_speed=10))
    first_events, second_events = await asyncio.gather(collect(first), collect(second))

    assert [e.data["telemetry_value"] for e in first_events if e.kind == EventKind.TELEMETRY] == [0, 1, 2]
    assert [e.data["telemetry_value"] for e in second_events if e.kind == EventKind.TELEMETRY] == [10, 11, 12, 13]
    assert first.session_id != second.session_id


@pytest.mark.asyncio
async def test_session_runs_once(scheduler):
    session = scheduler.create_session(ReplayRequest(vehicle_id=VEHICLE))
    await collect(session)

    with pytest.raises(RuntimeError):
        await collect(session)


@pytest.mark.asyncio
async def test_metrics_follow_session(scheduler, seed, metrics):
    seed([sample("2025-04-27T14:00:00.000Z"), sample("2025-04-27T14:00:00.001Z")])

    await collect(scheduler.create_session(ReplayRequest(vehicle_id=VEHICLE, playback_speed=10)))

    assert metrics.registry.get_sample_value("replay_sessions_active") == 0
    assert metrics.registry.get_sample_value("replay_events_total", {"event": "telemetry"}) == 2
    assert metrics.registry.get_sample_value("replay_events_total", {"event": "complete"}) == 1


@pytest.mark.asyncio
async def test_cancellation_token():
    token = CancellationToken()
    assert await token.sleep(0.01) is False

    token.cancel()
    token.cancel()
    assert token.is_cancelled
    assert await token.sleep(30) is True


def test_clamp_speed(scheduler):
    assert scheduler.clamp_speed(None) == 1.0
    assert scheduler.clamp_speed(50) == 10.0
    assert scheduler.clamp_speed(0.01) == 0.1
    assert scheduler.clamp_speed(2.5) == 2.5


def test_request_parses_channel_list():
    assert ReplayRequest(vehicle_id=VEHICLE, telemetry_names="vCar, aps,,").telemetry_names == ["vCar", "aps"]
    assert ReplayRequest(vehicle_id=VEHICLE, telemetry_names="").telemetry_names is None


def test_sse_framing():
    assert complete_event().to_sse() == 'event: complete\ndata: {"message":"Stream completed"}\n\n'
    assert error_event("boom").encode() == b'event: error\ndata: {"error":"boom"}\n\n'
    assert complete_event().is_terminal
    assert not ReplayEvent(EventKind.TELEMETRY, {"telemetry_value": 1.0}).is_terminal
