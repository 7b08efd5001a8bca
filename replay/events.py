"""
Replay events and their server-sent-event framing.

Frames are UTF-8 text: ``event: <kind>\\ndata: <json>\\n\\n``.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional
import json


class EventKind(str, Enum):
    """Kinds of replay events."""

    CONNECTED = "connected"
    TELEMETRY = "telemetry"
    COMPLETE = "complete"
    ERROR = "error"


TERMINAL_EVENTS = frozenset({EventKind.COMPLETE, EventKind.ERROR})


@dataclass(frozen=True)
class ReplayEvent:
    """One event of a replay session."""

    kind: EventKind
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.kind in TERMINAL_EVENTS

    def to_sse(self) -> str:
        """Render the event as a server-sent-event frame."""
        payload = json.dumps(self.data, default=str, separators=(",", ":"))
        return f"event: {self.kind.value}\ndata: {payload}\n\n"

    def encode(self) -> bytes:
        return self.to_sse().encode("utf-8")


def connected_event(vehicle_id: str, lap: Optional[int], playback_speed: float) -> ReplayEvent:
    return ReplayEvent(
        EventKind.CONNECTED,
        {"vehicleId": vehicle_id, "lap": lap, "playbackSpeed": playback_speed},
    )


def telemetry_event(row: Mapping[str, Any]) -> ReplayEvent:
    return ReplayEvent(EventKind.TELEMETRY, dict(row))


def complete_event() -> ReplayEvent:
    return ReplayEvent(EventKind.COMPLETE, {"message": "Stream completed"})


def error_event(message: str) -> ReplayEvent:
    return ReplayEvent(EventKind.ERROR, {"error": message})
