"""
Replay Scheduler - Time-scaled chronological telemetry replay

A session reads one vehicle's telemetry page by page (producer task, store
access in a worker thread) into a bounded queue, and emits the rows with the
original inter-sample spacing divided by the playback speed. A cancellation
token stops the session at the next record, page or sleep.
"""

from enum import Enum
from typing import AsyncIterator, List, Optional, Union
import asyncio
import uuid

from pydantic import BaseModel, Field, field_validator
from sqlalchemy.engine import Engine

from app.utils.logger import get_logger
from app.utils.time_utils import milliseconds_between
from app.utils.validators import clamp
from config.settings import ReplaySettings
from data_pipeline.errors import StreamError
from data_pipeline.utils.metrics import PipelineMetrics, pipeline_metrics
from replay.events import (
    ReplayEvent,
    complete_event,
    connected_event,
    error_event,
    telemetry_event,
)
from replay.reader import TelemetryPageReader


class ReplayState(str, Enum):
    """Replay session lifecycle states."""

    IDLE = "idle"
    CONNECTED = "connected"
    STREAMING = "streaming"
    COMPLETED = "completed"
    ABORTED = "aborted"
    ERRORED = "errored"


class CancellationToken:
    """
    Cooperative cancellation flag for one replay session.

    ``cancel()`` is idempotent; ``sleep()`` returns early when cancelled.
    """

    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    async def sleep(self, seconds: float) -> bool:
        """
        Sleep for ``seconds`` unless cancelled first.

        Returns:
            True if the token was cancelled before or during the sleep
        """
        if self.is_cancelled:
            return True
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
            return True
        except asyncio.TimeoutError:
            return False


class ReplayRequest(BaseModel):
    """What to replay and how fast."""

    vehicle_id: str = Field(min_length=1, description="Canonical vehicle id")
    lap: Optional[int] = Field(None, ge=0, description="Replay only this lap")
    telemetry_names: Optional[List[str]] = Field(None, description="Replay only these channels")
    playback_speed: Optional[float] = Field(None, gt=0.0, description="Playback multiplier")

    @field_validator("telemetry_names", mode="before")
    @classmethod
    def parse_names(cls, v):
        """Accept a comma separated string or a list; empty means all channels."""
        if v is None:
            return None
        if isinstance(v, str):
            v = v.split(",")
        names = [str(name).strip() for name in v if str(name).strip()]
        return names or None


_END = object()


class ReplaySession:
    """
    One replay of one vehicle's telemetry.

    Lifecycle: IDLE -> CONNECTED -> STREAMING -> COMPLETED | ABORTED | ERRORED.
    The event stream always ends with exactly one ``complete`` or ``error``
    event unless the session is cancelled, in which case it just stops.
    """

    def __init__(
        self,
        request: ReplayRequest,
        reader: TelemetryPageReader,
        playback_speed: float,
        settings: Optional[ReplaySettings] = None,
        metrics: Optional[PipelineMetrics] = None,
        token: Optional[CancellationToken] = None,
    ):
        self.request = request
        self.reader = reader
        self.playback_speed = playback_speed
        self.settings = settings or ReplaySettings()
        self.metrics = metrics or pipeline_metrics
        self.token = token or CancellationToken()

        self.session_id = str(uuid.uuid4())
        self.state = ReplayState.IDLE
        self.events_emitted = 0
        self.logger = get_logger(__name__)

    def cancel(self) -> None:
        self.token.cancel()

    def _emit(self, event: ReplayEvent) -> ReplayEvent:
        self.events_emitted += 1
        self.metrics.record_event(event.kind.value)
        return event

    async def _produce(self, queue: asyncio.Queue) -> None:
        """Fetch pages in a worker thread and hand them to the emitter."""
        loop = asyncio.get_running_loop()
        cursor = None
        try:
            while not self.token.is_cancelled:
                page = await loop.run_in_executor(None, self.reader.fetch_page, cursor)
                if self.token.is_cancelled or not page:
                    break
                await queue.put(page)
                if len(page) < self.reader.page_size:
                    break
                cursor = self.reader.cursor_of(page[-1])
        except Exception as e:
            await queue.put(e)
            return
        await queue.put(_END)

    async def events(self) -> AsyncIterator[ReplayEvent]:
        """
        Run the session, yielding events as they become due.

        Raises:
            RuntimeError: If the session was already started
        """
        if self.state != ReplayState.IDLE:
            raise RuntimeError(f"Replay session already {self.state.value}")

        self.metrics.replay_started()
        self.logger.info(
            f"Replay started for {self.request.vehicle_id}",
            extra={"extra_data": {
                "session_id": self.session_id,
                "lap": self.request.lap,
                "playback_speed": self.playback_speed,
            }},
        )
        try:
            self.state = ReplayState.CONNECTED
            yield self._emit(connected_event(self.request.vehicle_id, self.request.lap, self.playback_speed))

            if self.token.is_cancelled:
                self.state = ReplayState.ABORTED
                return

            self.state = ReplayState.STREAMING
            stream = self._stream()
            try:
                async for event in stream:
                    yield self._emit(event)
            finally:
                await stream.aclose()
        finally:
            self.metrics.replay_finished()
            self.logger.info(
                f"Replay {self.state.value} for {self.request.vehicle_id}",
                extra={"extra_data": {"session_id": self.session_id, "events": self.events_emitted}},
            )

    async def _stream(self) -> AsyncIterator[ReplayEvent]:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.settings.queue_depth)
        producer = asyncio.create_task(self._produce(queue))
        previous_timestamp: Optional[str] = None

        try:
            while True:
                if self.token.is_cancelled:
                    self.state = ReplayState.ABORTED
                    return

                item: Union[list, Exception, object] = await queue.get()
                if self.token.is_cancelled:
                    self.state = ReplayState.ABORTED
                    return
                if item is _END:
                    break
                if isinstance(item, Exception):
                    raise StreamError(f"Failed to read telemetry: {item}") from item

                for row in item:
                    if self.token.is_cancelled:
                        self.state = ReplayState.ABORTED
                        return

                    if previous_timestamp is not None:
                        delay_ms = milliseconds_between(previous_timestamp, row["timestamp"]) / self.playback_speed
                        if delay_ms > self.settings.min_delay_ms:
                            if await self.token.sleep(delay_ms / 1000.0):
                                self.state = ReplayState.ABORTED
                                return
                    previous_timestamp = row["timestamp"]
                    yield telemetry_event(row)

            self.state = ReplayState.COMPLETED
            yield complete_event()
        except Exception as e:
            self.state = ReplayState.ERRORED
            self.logger.error(
                f"Replay failed for {self.request.vehicle_id}: {e}",
                exc_info=True,
                extra={"extra_data": {"session_id": self.session_id}},
            )
            message = e.message if isinstance(e, StreamError) else f"Failed to read telemetry: {e}"
            yield error_event(message)
        finally:
            if not producer.done():
                producer.cancel()
            try:
                await producer
            except asyncio.CancelledError:
                pass


class ReplayScheduler:
    """
    Create replay sessions against a store.

    Sessions share nothing but the engine; each owns its reader cursor,
    queue and cancellation token.
    """

    def __init__(
        self,
        engine: Engine,
        settings: Optional[ReplaySettings] = None,
        metrics: Optional[PipelineMetrics] = None,
    ):
        self.engine = engine
        self.settings = settings or ReplaySettings()
        self.metrics = metrics or pipeline_metrics

    def clamp_speed(self, playback_speed: Optional[float]) -> float:
        if playback_speed is None:
            return self.settings.default_playback_speed
        return clamp(playback_speed, self.settings.min_playback_speed, self.settings.max_playback_speed)

    def create_session(
        self,
        request: ReplayRequest,
        token: Optional[CancellationToken] = None,
    ) -> ReplaySession:
        reader = TelemetryPageReader(
            self.engine,
            request.vehicle_id,
            lap=request.lap,
            telemetry_names=request.telemetry_names,
            page_size=self.settings.page_size,
        )
        return ReplaySession(
            request,
            reader,
            playback_speed=self.clamp_speed(request.playback_speed),
            settings=self.settings,
            metrics=self.metrics,
            token=token,
        )
