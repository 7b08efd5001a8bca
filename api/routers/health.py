"""Health endpoint."""

import time
from fastapi import APIRouter, Depends, Request
import sqlalchemy as sa

from api.dependencies import get_context
from api.schemas.common import HealthCheckResponse, ComponentHealth, ComponentStatus
from app import __version__
from app.context import PipelineContext
from data_pipeline.storage.schema import schema_version

router = APIRouter()


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(request: Request, context: PipelineContext = Depends(get_context)):
    """
    Basic health check endpoint.

    Reports whether the store answers and which schema version it carries.
    """
    components = {}
    overall_status = ComponentStatus.HEALTHY

    try:
        start = time.time()
        with context.engine.connect() as conn:
            version = conn.execute(sa.select(sa.func.max(schema_version.c.version))).scalar()
        components["database"] = ComponentHealth(
            status=ComponentStatus.HEALTHY,
            latency_ms=(time.time() - start) * 1000,
            message=f"schema v{version}",
        )
    except sa.exc.SQLAlchemyError as e:
        components["database"] = ComponentHealth(
            status=ComponentStatus.UNHEALTHY,
            message=str(e)
        )
        overall_status = ComponentStatus.UNHEALTHY

    return HealthCheckResponse(
        status=overall_status,
        version=__version__,
        uptime_seconds=time.time() - request.app.state.start_time,
        components=components,
    )
