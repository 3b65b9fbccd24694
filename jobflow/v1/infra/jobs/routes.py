"""
Read-only job and queue endpoints.
"""

from typing import Any

from fastapi import APIRouter, Request

from jobflow.v1.core.container import QueueDep, StatusServiceDep
from jobflow.v1.core.exceptions import create_success_response
from jobflow.v1.infra.jobs.queue import JobQueue
from jobflow.v1.infra.jobs.status import JobStatusService

router = APIRouter(tags=["jobs"])


@router.get("/jobs/{queue_name}/{job_id}", response_model=dict)
async def get_job_status(
    queue_name: str,
    job_id: str,
    request: Request,
    status_service: JobStatusService = StatusServiceDep,
) -> dict[str, Any]:
    """Lifecycle state, progress and outcome of one job."""
    status = await status_service.status(queue_name, job_id)
    return create_success_response(
        data=status.model_dump(mode="json"), request_id=request.state.request_id
    )


@router.get("/queues/counts", response_model=dict)
async def get_all_queue_counts(
    request: Request, queue: JobQueue = QueueDep
) -> dict[str, Any]:
    counts = await queue.counts()
    return create_success_response(
        data={c.queue_name: c.as_dict() for c in counts},
        request_id=request.state.request_id,
    )


@router.get("/queues/counts/{queue_name}", response_model=dict)
async def get_queue_counts(
    queue_name: str, request: Request, queue: JobQueue = QueueDep
) -> dict[str, Any]:
    counts = await queue.counts(queue_name)
    return create_success_response(
        data={c.queue_name: c.as_dict() for c in counts},
        request_id=request.state.request_id,
    )
