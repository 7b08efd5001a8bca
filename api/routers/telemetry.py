"""Telemetry replay stream endpoint (server-sent events)."""

import asyncio
from typing import AsyncIterator, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import StreamingResponse

from api.dependencies import get_context, get_scheduler
from app.context import PipelineContext
from app.utils.logger import get_logger
from data_pipeline.identity import VehicleIdentityResolver
from replay.scheduler import ReplayRequest, ReplayScheduler, ReplaySession

router = APIRouter()
logger = get_logger(__name__)

# Seconds between client disconnect checks
DISCONNECT_POLL_INTERVAL = 0.5

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


async def _watch_disconnect(request: Request, session: ReplaySession) -> None:
    """Cancel the session once the client goes away."""
    while not session.token.is_cancelled:
        if await request.is_disconnected():
            logger.info(
                "Client disconnected, cancelling replay",
                extra={"extra_data": {"session_id": session.session_id}},
            )
            session.cancel()
            return
        await asyncio.sleep(DISCONNECT_POLL_INTERVAL)


async def _event_stream(request: Request, session: ReplaySession) -> AsyncIterator[str]:
    watcher = asyncio.create_task(_watch_disconnect(request, session))
    events = session.events()
    try:
        async for event in events:
            yield event.to_sse()
    finally:
        session.cancel()
        await events.aclose()
        watcher.cancel()
        try:
            await watcher
        except asyncio.CancelledError:
            pass


@router.get("/stream/{vehicle_id}")
async def stream_telemetry(
    request: Request,
    vehicle_id: str,
    lap: Optional[int] = Query(None, ge=0, description="Replay only this lap"),
    telemetry_names: Optional[str] = Query(
        None, alias="telemetryNames", description="Comma separated channel names"
    ),
    playback_speed: Optional[float] = Query(
        None, alias="playbackSpeed", description="Playback multiplier"
    ),
    context: PipelineContext = Depends(get_context),
    scheduler: ReplayScheduler = Depends(get_scheduler),
):
    """
    Replay a vehicle's telemetry in chronological order.

    Emits ``connected``, then one ``telemetry`` event per sample spaced by
    the original timing divided by ``playbackSpeed``, then ``complete`` (or
    ``error``). The stream stops when the client disconnects.
    """
    resolver = VehicleIdentityResolver(context.settings.ingestion)
    if not resolver.is_canonical(vehicle_id):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Vehicle ID must match format {resolver.template}",
        )

    replay_settings = context.settings.replay
    if playback_speed is not None and not (
        replay_settings.min_playback_speed <= playback_speed <= replay_settings.max_playback_speed
    ):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=(
                f"playbackSpeed must be between {replay_settings.min_playback_speed} "
                f"and {replay_settings.max_playback_speed}"
            ),
        )

    replay_request = ReplayRequest(
        vehicle_id=vehicle_id,
        lap=lap,
        telemetry_names=telemetry_names,
        playback_speed=playback_speed,
    )
    session = scheduler.create_session(replay_request)

    return StreamingResponse(
        _event_stream(request, session),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
