"""
Reference job worker that pulls from the queue and runs registered handlers.

Deployments usually run workers as separate processes; this loop is the
contract they follow with the queue.
"""

import asyncio
import os
import socket
from typing import Any

from jobflow.config.logging import get_logger
from jobflow.config.settings import Settings
from jobflow.v1.core.exceptions import ValidationError
from jobflow.v1.core.registries import JobRegistry
from jobflow.v1.infra.jobs.models import Job
from jobflow.v1.infra.jobs.queue import JobQueue

logger = get_logger(__name__)


class JobWorker:
    """
    Polling worker for one or more queues.

    - Claims ready jobs in priority order
    - Dispatches each to the handler registered for its queue and kind
    - Reports success, failure and retry decisions back to the queue
    """

    def __init__(
        self,
        queue: JobQueue,
        registry: JobRegistry,
        settings: Settings,
        queue_names: list[str] | None = None,
    ):
        self.queue = queue
        self.registry = registry
        self.settings = settings
        self.queue_names = queue_names or queue.queue_names()
        self.worker_id = f"{socket.gethostname()}-{os.getpid()}-{id(self)}"
        self.running = False
        self.active_jobs: set[asyncio.Task] = set()

    async def start(self) -> None:
        """Run the poll loop until ``stop()`` is called."""
        if self.running:
            raise RuntimeError("Worker is already running")

        # Handlers are registered before the loop starts
        self.registry.freeze()
        self.running = True
        logger.info(
            "Starting job worker",
            worker_id=self.worker_id,
            queues=self.queue_names,
            concurrency=self.settings.worker_concurrency,
        )

        try:
            while self.running:
                try:
                    claimed = await self.poll_once()
                except Exception:
                    logger.exception("Error in worker loop", worker_id=self.worker_id)
                    await asyncio.sleep(5)
                    continue
                if not claimed:
                    await asyncio.sleep(self.settings.worker_poll_interval_ms / 1000)
        finally:
            self.running = False

    async def stop(self, timeout_s: float = 30) -> None:
        """Stop polling and wait for in-flight jobs."""
        logger.info("Stopping job worker", worker_id=self.worker_id)
        self.running = False
        if self.active_jobs:
            _, pending = await asyncio.wait(self.active_jobs, timeout=timeout_s)
            if pending:
                logger.warning(
                    "Worker stopped with active jobs",
                    worker_id=self.worker_id,
                    active_jobs=len(pending),
                )

    async def poll_once(self) -> int:
        """Claim up to the free concurrency slots and start processing them."""
        claimed = 0
        for queue_name in self.queue_names:
            while len(self.active_jobs) < self.settings.worker_concurrency:
                job = await self.queue.claim_next(queue_name, self.worker_id)
                if job is None:
                    break
                task = asyncio.create_task(self.process(job))
                self.active_jobs.add(task)
                task.add_done_callback(self.active_jobs.discard)
                claimed += 1
        return claimed

    async def process(self, job: Job) -> None:
        """Run one claimed job and record its outcome."""
        job_logger = logger.bind(
            job_id=str(job.id), queue=job.queue_name, kind=job.kind, attempt=job.attempts
        )

        try:
            handler = self.registry.get_handler(job.queue_name, job.kind)
        except KeyError as e:
            job_logger.error("No handler registered for job")
            await self.queue.fail(job.id, str(e), retryable=False)
            return

        try:
            job_logger.info("Processing job started")
            result: Any = await handler.handle(job)
        except ValidationError as e:
            job_logger.warning("Job rejected its payload", error=e.message)
            await self.queue.fail(job.id, e.message, retryable=False)
        except Exception as e:
            job_logger.exception("Job processing failed")
            await self.queue.fail(job.id, str(e) or e.__class__.__name__)
        else:
            await self.queue.complete(job.id, result)
            job_logger.info("Processing job completed successfully")
