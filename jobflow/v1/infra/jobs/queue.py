"""
Job queue: submission with deduplication, lookups, counts, and the
worker-side lifecycle transitions.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import and_, delete, func, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from jobflow.config.settings import QueueDefinition
from jobflow.v1.core.exceptions import (
    NotFoundError,
    TerminalJobError,
    TransientInfraError,
    ValidationError,
)
from jobflow.v1.infra.jobs.models import (
    NON_TERMINAL_STATES,
    TERMINAL_STATES,
    Job,
    JobState,
    utcnow,
)
from jobflow.v1.infra.jobs.policy import backoff_delay, default_policy
from jobflow.v1.infra.jobs.schemas import JobHandle, QueueCounts, SubmitOptions

logger = logging.getLogger(__name__)

RETRY_SCHEDULED = "RETRY_SCHEDULED"


def parse_job_id(job_id: str | UUID) -> UUID | None:
    if isinstance(job_id, UUID):
        return job_id
    try:
        return UUID(str(job_id))
    except ValueError:
        return None


class JobQueue:
    """
    Named, durable work queues backed by the jobs table.

    The table is the single source of truth for job state. Submissions that
    carry a dedup key are collapsed onto the existing non-terminal job with
    the same ``(queue_name, dedup_key)``; a partial unique index makes the
    check-and-create atomic when submissions race.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        definitions: dict[str, QueueDefinition],
        clock: Callable[[], datetime] = utcnow,
    ):
        self._sessions = session_factory
        self._definitions = dict(definitions)
        self._clock = clock

    def queue_names(self) -> list[str]:
        return list(self._definitions)

    def definition(self, queue_name: str) -> QueueDefinition:
        try:
            return self._definitions[queue_name]
        except KeyError:
            raise NotFoundError(
                f"Queue '{queue_name}' not found", details={"queue_name": queue_name}
            ) from None

    async def submit(
        self,
        queue_name: str,
        kind: str,
        payload: dict[str, Any] | None = None,
        options: SubmitOptions | None = None,
    ) -> JobHandle:
        """
        Submit a job, or return the live job already holding its dedup key.

        Raises:
            ValidationError: queue name or kind missing, unknown queue, bad payload
            TransientInfraError: the queue store could not be reached
        """
        if not queue_name or not str(queue_name).strip():
            raise ValidationError("queue_name is required")
        if not kind or not str(kind).strip():
            raise ValidationError("kind is required")
        if queue_name not in self._definitions:
            raise ValidationError(
                f"Unknown queue '{queue_name}'", details={"queue_name": queue_name}
            )
        if payload is not None and not isinstance(payload, dict):
            raise ValidationError("payload must be an object")

        options = options or SubmitOptions()
        definition = self._definitions[queue_name]
        policy = options.retry_policy or default_policy(definition)
        now = self._clock()

        try:
            async with self._sessions() as session:
                if options.dedup_key:
                    existing = await self._find_active(session, queue_name, options.dedup_key)
                    if existing:
                        return self._deduplicated(existing)

                job = Job(
                    queue_name=queue_name,
                    kind=kind,
                    payload=payload or {},
                    dedup_key=options.dedup_key,
                    priority=options.priority or definition.default_priority,
                    state=JobState.WAITING.value,
                    attempts=0,
                    max_attempts=policy.max_attempts,
                    backoff_type=policy.backoff.type.value,
                    backoff_delay_ms=policy.backoff.delay_ms,
                    run_at=now + timedelta(milliseconds=options.delay_ms or 0),
                    created_at=now,
                    updated_at=now,
                )
                session.add(job)
                try:
                    await session.commit()
                except IntegrityError:
                    await session.rollback()
                    if not options.dedup_key:
                        raise
                    # Lost a race against a concurrent submission with the same key
                    existing = await self._find_active(session, queue_name, options.dedup_key)
                    if existing is None:
                        raise
                    return self._deduplicated(existing)

                logger.info(
                    "Job enqueued",
                    extra={
                        "job_id": str(job.id),
                        "queue": queue_name,
                        "kind": kind,
                        "priority": job.priority,
                        "dedup_key": options.dedup_key,
                    },
                )
                return JobHandle(
                    job_id=job.id,
                    queue_name=queue_name,
                    kind=kind,
                    state=job.state,
                    deduplicated=False,
                )
        except IntegrityError:
            raise
        except (DBAPIError, OSError) as e:
            logger.exception(
                "Job submission failed", extra={"queue": queue_name, "kind": kind}
            )
            raise TransientInfraError(
                "Job queue is unavailable", details={"queue_name": queue_name}
            ) from e

    def _deduplicated(self, existing: Job) -> JobHandle:
        logger.info(
            "Job deduplicated",
            extra={
                "job_id": str(existing.id),
                "queue": existing.queue_name,
                "dedup_key": existing.dedup_key,
                "state": existing.state,
            },
        )
        return JobHandle(
            job_id=existing.id,
            queue_name=existing.queue_name,
            kind=existing.kind,
            state=existing.state,
            deduplicated=True,
        )

    async def _find_active(
        self, session: AsyncSession, queue_name: str, dedup_key: str
    ) -> Job | None:
        """Find the non-terminal job holding a dedup key."""
        result = await session.execute(
            select(Job)
            .where(
                and_(
                    Job.queue_name == queue_name,
                    Job.dedup_key == dedup_key,
                    Job.state.in_(NON_TERMINAL_STATES),
                )
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_job(self, queue_name: str, job_id: str | UUID) -> Job:
        """Get a job by id within one queue."""
        self.definition(queue_name)
        job_uuid = parse_job_id(job_id)
        if job_uuid is not None:
            async with self._sessions() as session:
                job = await session.get(Job, job_uuid)
            if job is not None and job.queue_name == queue_name:
                return job
        raise NotFoundError(
            f"Job '{job_id}' not found in queue '{queue_name}'",
            details={"queue_name": queue_name, "job_id": str(job_id)},
        )

    async def get_state(self, job_id: str | UUID) -> str:
        job_uuid = parse_job_id(job_id)
        if job_uuid is not None:
            async with self._sessions() as session:
                state = await session.scalar(select(Job.state).where(Job.id == job_uuid))
            if state is not None:
                return state
        raise NotFoundError(f"Job '{job_id}' not found", details={"job_id": str(job_id)})

    async def counts(self, queue_name: str | None = None) -> list[QueueCounts]:
        """Per-state job counts for one queue or every declared queue."""
        names = [queue_name] if queue_name else self.queue_names()
        for name in names:
            self.definition(name)

        now = self._clock()
        by_queue = {name: QueueCounts(queue_name=name) for name in names}

        async with self._sessions() as session:
            rows = await session.execute(
                select(Job.queue_name, Job.state, func.count(Job.id))
                .where(Job.queue_name.in_(names))
                .group_by(Job.queue_name, Job.state)
            )
            for name, state, count in rows.all():
                setattr(by_queue[name], state, count)

            delayed = await session.execute(
                select(Job.queue_name, func.count(Job.id))
                .where(
                    and_(
                        Job.queue_name.in_(names),
                        Job.state == JobState.WAITING.value,
                        Job.run_at > now,
                    )
                )
                .group_by(Job.queue_name)
            )
            for name, count in delayed.all():
                by_queue[name].delayed = count

        return [by_queue[name] for name in names]

    async def clean(self, queue_name: str, state: JobState, older_than: timedelta) -> int:
        """Delete terminal jobs of one state that finished before ``now - older_than``."""
        self.definition(queue_name)
        if state.value not in TERMINAL_STATES:
            raise ValidationError("Only completed or failed jobs can be cleaned")

        cutoff = self._clock() - older_than
        async with self._sessions() as session:
            result = await session.execute(
                delete(Job).where(
                    and_(
                        Job.queue_name == queue_name,
                        Job.state == state.value,
                        Job.finished_on < cutoff,
                    )
                )
            )
            await session.commit()

        deleted = result.rowcount or 0
        if deleted:
            logger.info(
                "Cleaned old jobs",
                extra={"queue": queue_name, "state": state.value, "deleted_count": deleted},
            )
        return deleted

    # Worker-side transitions

    async def claim_next(self, queue_name: str, worker_id: str) -> Job | None:
        """
        Claim the next ready job: lowest priority number first, then oldest run_at.

        Returns None when nothing is ready.
        """
        self.definition(queue_name)
        now = self._clock()

        async with self._sessions() as session:
            candidate = await session.scalar(
                select(Job.id)
                .where(
                    and_(
                        Job.queue_name == queue_name,
                        Job.state == JobState.WAITING.value,
                        Job.run_at <= now,
                    )
                )
                .order_by(Job.priority, Job.run_at, Job.created_at)
                .limit(1)
                .with_for_update(skip_locked=True)
            )
            if candidate is None:
                return None

            claimed = await session.execute(
                update(Job)
                .where(and_(Job.id == candidate, Job.state == JobState.WAITING.value))
                .values(
                    state=JobState.ACTIVE.value,
                    attempts=Job.attempts + 1,
                    locked_by=worker_id,
                    processed_on=now,
                    updated_at=now,
                )
            )
            await session.commit()
            if claimed.rowcount != 1:
                return None

            job = await session.get(Job, candidate, populate_existing=True)

        logger.info(
            "Job claimed",
            extra={
                "job_id": str(job.id),
                "queue": queue_name,
                "worker_id": worker_id,
                "attempt": job.attempts,
            },
        )
        return job

    async def update_progress(self, job_id: str | UUID, progress: Any) -> None:
        async with self._sessions() as session:
            job = await self._load_active(session, job_id)
            job.progress = progress
            job.updated_at = self._clock()
            await session.commit()

    async def complete(self, job_id: str | UUID, result: Any = None) -> Job:
        now = self._clock()
        async with self._sessions() as session:
            job = await self._load_active(session, job_id)
            job.state = JobState.COMPLETED.value
            job.result = result
            job.locked_by = None
            job.finished_on = now
            job.updated_at = now
            await session.commit()
        return job

    async def fail(self, job_id: str | UUID, error: str, retryable: bool = True) -> Job:
        """
        Record a failed attempt.

        While attempts remain the job goes back to ``waiting`` with ``run_at``
        pushed out by the backoff delay. Otherwise, or when the error is not
        retryable, it becomes terminally ``failed``.
        """
        now = self._clock()
        async with self._sessions() as session:
            job = await self._load_active(session, job_id)
            job.last_error = error[:2000]
            job.locked_by = None
            job.updated_at = now

            if retryable and job.has_attempts_left():
                delay = backoff_delay(job.backoff_type, job.backoff_delay_ms, job.attempts)
                job.state = JobState.WAITING.value
                job.run_at = now + delay
                job.error_code = RETRY_SCHEDULED
                await session.commit()
                logger.info(
                    "Job retry scheduled",
                    extra={
                        "job_id": str(job.id),
                        "queue": job.queue_name,
                        "attempt": job.attempts,
                        "delay_ms": int(delay.total_seconds() * 1000),
                    },
                )
                return job

            job.state = JobState.FAILED.value
            job.error_code = TerminalJobError.code
            job.finished_on = now
            await session.commit()

        logger.error(
            "Job failed permanently",
            extra={
                "job_id": str(job.id),
                "queue": job.queue_name,
                "attempts": job.attempts,
                "error": error,
            },
        )
        return job

    async def _load_active(self, session: AsyncSession, job_id: str | UUID) -> Job:
        job_uuid = parse_job_id(job_id)
        job = await session.get(Job, job_uuid) if job_uuid else None
        if job is None:
            raise NotFoundError(f"Job '{job_id}' not found", details={"job_id": str(job_id)})
        if job.state != JobState.ACTIVE.value:
            raise ValidationError(
                f"Job '{job_id}' is not active", details={"state": job.state}
            )
        return job
