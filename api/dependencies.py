"""Dependency injection for FastAPI endpoints."""

from fastapi import Request

from app.context import PipelineContext
from replay.scheduler import ReplayScheduler


def get_context(request: Request) -> PipelineContext:
    """Pipeline context attached to the application at startup."""
    return request.app.state.context


def get_scheduler(request: Request) -> ReplayScheduler:
    """Replay scheduler bound to the application's store."""
    return request.app.state.scheduler
