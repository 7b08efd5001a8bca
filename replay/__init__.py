"""
Replay Package - Chronological, time-scaled telemetry replay
"""

from replay.events import EventKind, ReplayEvent
from replay.reader import TelemetryPageReader
from replay.scheduler import (
    CancellationToken,
    ReplayRequest,
    ReplayScheduler,
    ReplaySession,
    ReplayState,
)

__all__ = [
    "EventKind",
    "ReplayEvent",
    "TelemetryPageReader",
    "CancellationToken",
    "ReplayRequest",
    "ReplayScheduler",
    "ReplaySession",
    "ReplayState",
]
