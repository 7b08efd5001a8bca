"""Main FastAPI application entry point."""

import time
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.schemas.common import ErrorResponse, ErrorCode
from api.routers import health, telemetry
from app import __version__
from app.context import PipelineContext
from app.utils.logger import get_logger, reset_correlation_id, set_correlation_id
from config.settings import Settings, get_settings
from data_pipeline.errors import PipelineError
from replay.scheduler import ReplayScheduler

logger = get_logger(__name__)


def create_app(
    context: Optional[PipelineContext] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """
    Build the stream API.

    Args:
        context: Pipeline context to serve from. When omitted one is created
                 from settings at startup and disposed at shutdown.
        settings: Settings used when no context is given
    """
    settings = context.settings if context is not None else (settings or get_settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager for startup and shutdown."""
        owns_context = context is None
        app_context = context or PipelineContext.create(settings)
        app.state.context = app_context
        app.state.scheduler = ReplayScheduler(
            app_context.engine,
            settings=app_context.settings.replay,
            metrics=app_context.metrics,
        )
        app.state.start_time = time.time()
        logger.info(
            "Stream API started",
            extra={"extra_data": {"env": settings.env, "database": settings.database.url}},
        )

        yield

        if owns_context:
            app_context.close()
        logger.info("Stream API stopped")

    app = FastAPI(
        title="Race Data Replay API",
        version=__version__,
        description="Chronological, time-scaled replay of imported race telemetry",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_credentials=False,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions."""
        error_code_map = {
            400: ErrorCode.BAD_REQUEST,
            404: ErrorCode.NOT_FOUND,
            422: ErrorCode.VALIDATION_ERROR,
            503: ErrorCode.SERVICE_UNAVAILABLE,
        }

        error_response = ErrorResponse(
            error_code=error_code_map.get(exc.status_code, ErrorCode.INTERNAL_ERROR),
            message=str(exc.detail),
            request_id=getattr(request.state, "correlation_id", None),
        )

        logger.warning(
            f"HTTP {exc.status_code}: {exc.detail}",
            extra={"extra_data": {"path": request.url.path, "method": request.method}},
        )

        return JSONResponse(
            status_code=exc.status_code,
            content=error_response.model_dump(mode="json"),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle validation errors."""
        error_response = ErrorResponse(
            error_code=ErrorCode.VALIDATION_ERROR,
            message="Request validation failed",
            details={"errors": [
                {"loc": list(error.get("loc", ())), "msg": error.get("msg")}
                for error in exc.errors()
            ]},
            request_id=getattr(request.state, "correlation_id", None),
        )

        logger.warning(
            "Validation error",
            extra={"extra_data": {"path": request.url.path, "errors": str(exc.errors())}},
        )

        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=error_response.model_dump(mode="json"),
        )

    @app.exception_handler(PipelineError)
    async def pipeline_exception_handler(request: Request, exc: PipelineError):
        """Handle pipeline errors raised before a stream starts."""
        error_response = ErrorResponse(
            error_code=ErrorCode.STREAM_ERROR,
            message=exc.message,
            details={"code": exc.code},
            request_id=getattr(request.state, "correlation_id", None),
        )

        logger.error(
            f"Pipeline error: {exc}",
            extra={"extra_data": {"path": request.url.path, "code": exc.code}},
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_response.model_dump(mode="json"),
        )

    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next):
        """Add correlation ID to each request and set it in the logging context."""
        correlation_id = request.headers.get(
            "X-Correlation-ID",
            request.headers.get("X-Request-ID", str(uuid.uuid4()))
        )
        token = set_correlation_id(correlation_id)
        request.state.correlation_id = correlation_id
        try:
            response = await call_next(request)
        finally:
            reset_correlation_id(token)
        response.headers["X-Correlation-ID"] = correlation_id
        return response

    app.include_router(telemetry.router, prefix="/api/telemetry", tags=["Telemetry"])
    app.include_router(health.router, tags=["Health"])

    return app
