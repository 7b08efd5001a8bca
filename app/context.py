"""
Pipeline context - settings and database engine resolved at an entry point

The CLI and the API factory build one context and pass it to the components
they create; nothing below the entry point reads settings or opens engines
on its own.
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.engine import Engine

from app.utils.logger import get_logger
from config.settings import Settings, get_settings
from data_pipeline.storage.database import create_engine, init_database
from data_pipeline.utils.metrics import PipelineMetrics, pipeline_metrics


logger = get_logger(__name__)


@dataclass
class PipelineContext:
    """Settings plus an initialized engine."""

    settings: Settings
    engine: Engine
    metrics: PipelineMetrics = pipeline_metrics

    @classmethod
    def create(
        cls,
        settings: Optional[Settings] = None,
        database_url: Optional[str] = None,
        metrics: Optional[PipelineMetrics] = None,
    ) -> "PipelineContext":
        """
        Build a context, creating the schema if needed.

        Args:
            settings: Settings to use (cached environment settings by default)
            database_url: Overrides ``settings.database.url`` (URL or SQLite path)
            metrics: Metrics sink (process-wide default if omitted)

        Raises:
            SchemaVersionError: If the store is newer than this code
        """
        settings = settings or get_settings()
        url = database_url or settings.database.url
        engine = create_engine(url, echo=settings.database.echo)
        try:
            init_database(engine)
        except Exception:
            engine.dispose()
            raise

        logger.debug("Pipeline context ready", extra={"extra_data": {"database": url}})
        return cls(settings=settings, engine=engine, metrics=metrics or pipeline_metrics)

    def close(self) -> None:
        self.engine.dispose()

    def __enter__(self) -> "PipelineContext":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
