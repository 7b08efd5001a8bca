"""
Pipeline Metrics - Prometheus metrics for monitoring

Tracks import throughput, parse/identity failures, import latency and
replay session activity.
"""

from typing import Optional
from prometheus_client import CollectorRegistry, Counter, Histogram, Gauge, REGISTRY

from app.utils.logger import get_logger


class PipelineMetrics:
    """
    Centralized metrics for import and replay monitoring.

    Tracks:
    - Records imported per source
    - Errors per source and kind
    - Import duration per source
    - Active replay sessions
    - Replay events emitted per kind

    Pass a private ``CollectorRegistry`` to keep instances isolated (tests
    create several); the module-level ``pipeline_metrics`` uses the default
    registry.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """Initialize Prometheus metrics."""
        self.logger = get_logger(__name__)
        self.registry = registry = registry if registry is not None else REGISTRY

        # Throughput metrics
        self.records_imported = Counter(
            'import_records_total',
            'Total records imported',
            ['source'],
            registry=registry,
        )

        self.vehicles_created = Counter(
            'import_vehicles_created_total',
            'Vehicle identities created during import',
            registry=registry,
        )

        # Latency metrics
        self.import_duration = Histogram(
            'import_duration_seconds',
            'Import duration per source file',
            ['source'],
            buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 300.0],
            registry=registry,
        )

        # Error metrics
        self.import_errors = Counter(
            'import_errors_total',
            'Total import errors',
            ['source', 'error_type'],
            registry=registry,
        )

        # Replay metrics
        self.active_replays = Gauge(
            'replay_sessions_active',
            'Number of replay sessions currently streaming',
            registry=registry,
        )

        self.replay_events = Counter(
            'replay_events_total',
            'Replay events emitted',
            ['event'],
            registry=registry,
        )

        self.logger.debug("Pipeline metrics initialized")

    def record_import(self, source: str, records: int, duration: float):
        """Record a successfully loaded source file."""
        self.records_imported.labels(source=source).inc(records)
        self.import_duration.labels(source=source).observe(duration)

    def record_vehicles(self, count: int):
        if count > 0:
            self.vehicles_created.inc(count)

    def record_error(self, source: str, error_type: str, count: int = 1):
        """Record import errors of one kind (parse, identity, import)."""
        if count > 0:
            self.import_errors.labels(source=source, error_type=error_type).inc(count)

    def replay_started(self):
        self.active_replays.inc()

    def replay_finished(self):
        self.active_replays.dec()

    def record_event(self, event: str):
        self.replay_events.labels(event=event).inc()


pipeline_metrics = PipelineMetrics()
