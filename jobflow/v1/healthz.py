from datetime import UTC, datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from jobflow.infra.database import get_session
from jobflow.v1.core.container import ServiceContainer, ServicesDep
from jobflow.v1.core.exceptions import create_success_response
from jobflow.v1.infra.jobs.models import NON_TERMINAL_STATES, Job, JobState

router = APIRouter()


class DatabaseHealth(BaseModel):
    """Database health status."""

    connected: bool
    response_time_ms: float | None = None
    error: str | None = None


class QueueHealth(BaseModel):
    waiting: int = 0
    active: int = 0
    queue_depth: int = 0


@router.get("/healthz", response_model=dict)
async def health_check(
    services: ServiceContainer = ServicesDep,
    session: AsyncSession = Depends(get_session),
):
    """Health check with database connectivity, queue depth and scheduler state."""

    settings = services.settings
    db_health = await _check_database_health(session)

    queue_health = None
    if db_health.connected:
        queue_health = await _check_queue_health(session)

    health_data = {
        "ok": db_health.connected,
        "version": settings.version,
        "environment": settings.environment,
        "timestamp": datetime.now(UTC).isoformat(),
        "database": db_health.model_dump(),
        "queues": queue_health.model_dump() if queue_health else None,
        "scheduler_running": services.scheduler.running,
    }

    return create_success_response(data=health_data)


async def _check_database_health(session: AsyncSession) -> DatabaseHealth:
    """Check database connectivity and response time."""
    start_time = datetime.now(UTC)

    try:
        await session.execute(text("SELECT 1"))
        response_time_ms = (datetime.now(UTC) - start_time).total_seconds() * 1000
        return DatabaseHealth(connected=True, response_time_ms=round(response_time_ms, 2))
    except Exception as e:
        return DatabaseHealth(connected=False, error=str(e))


async def _check_queue_health(session: AsyncSession) -> QueueHealth:
    result = await session.execute(
        select(Job.state, func.count(Job.id))
        .where(Job.state.in_(NON_TERMINAL_STATES))
        .group_by(Job.state)
    )
    by_state = dict(result.all())
    waiting = by_state.get(JobState.WAITING.value, 0)
    active = by_state.get(JobState.ACTIVE.value, 0)
    return QueueHealth(waiting=waiting, active=active, queue_depth=waiting + active)
