"""
Read-only job status lookups.
"""

from uuid import UUID

from jobflow.v1.infra.jobs.models import as_utc
from jobflow.v1.infra.jobs.queue import JobQueue
from jobflow.v1.infra.jobs.schemas import JobStatusResponse


class JobStatusService:
    """Reports a job's lifecycle state, progress and outcome. Never mutates."""

    def __init__(self, queue: JobQueue):
        self.queue = queue

    async def status(self, queue_name: str, job_id: str | UUID) -> JobStatusResponse:
        """
        Raises:
            NotFoundError: the queue or the job id within it is unknown
        """
        job = await self.queue.get_job(queue_name, job_id)
        return JobStatusResponse(
            job_id=job.id,
            queue_name=job.queue_name,
            kind=job.kind,
            state=job.state,
            progress=job.progress,
            result=job.result,
            error=job.last_error,
            error_code=job.error_code,
            attempts=job.attempts,
            max_attempts=job.max_attempts,
            processed_on=as_utc(job.processed_on),
            finished_on=as_utc(job.finished_on),
        )
