"""Tests for the reference job worker."""

import asyncio

import pytest

from jobflow.v1.core.exceptions import ValidationError
from jobflow.v1.core.registries import JobRegistry
from jobflow.v1.infra.jobs.worker import JobWorker


class OrderHandler:
    def __init__(self, error: Exception | None = None):
        self.error = error
        self.seen = []

    async def handle(self, job):
        self.seen.append(job.payload)
        if self.error is not None:
            raise self.error
        return {"order_id": job.payload["order"]["id"], "status": "processed"}


@pytest.fixture
def registry():
    return JobRegistry()


@pytest.fixture
def worker(queue, registry, test_settings):
    return JobWorker(queue, registry, test_settings, queue_names=["shopify-orders"])


async def claim(queue):
    job = await queue.claim_next("shopify-orders", "test-worker")
    assert job is not None
    return job


async def test_successful_handler_completes_job(queue, registry, worker):
    handler = OrderHandler()
    registry.register_handler("shopify-orders", "order-created", handler)
    handle = await queue.submit("shopify-orders", "order-created", {"order": {"id": 9}})

    await worker.process(await claim(queue))

    job = await queue.get_job("shopify-orders", handle.job_id)
    assert job.state == "completed"
    assert job.result == {"order_id": 9, "status": "processed"}
    assert handler.seen == [{"order": {"id": 9}}]


async def test_handler_exception_schedules_retry(queue, registry, worker):
    registry.register_handler(
        "shopify-orders", "order-created", OrderHandler(RuntimeError("store timeout"))
    )
    handle = await queue.submit("shopify-orders", "order-created", {"order": {"id": 9}})

    await worker.process(await claim(queue))

    job = await queue.get_job("shopify-orders", handle.job_id)
    assert job.state == "waiting"
    assert job.attempts == 1
    assert job.last_error == "store timeout"


async def test_validation_error_is_never_retried(queue, registry, worker):
    registry.register_handler(
        "shopify-orders", "order-created", OrderHandler(ValidationError("missing line items"))
    )
    handle = await queue.submit("shopify-orders", "order-created", {"order": {"id": 9}})

    await worker.process(await claim(queue))

    job = await queue.get_job("shopify-orders", handle.job_id)
    assert job.state == "failed"
    assert job.attempts == 1
    assert job.last_error == "missing line items"


async def test_missing_handler_fails_job(queue, worker):
    handle = await queue.submit("shopify-orders", "unknown-kind", {})

    await worker.process(await claim(queue))

    job = await queue.get_job("shopify-orders", handle.job_id)
    assert job.state == "failed"
    assert "No job implementation registered" in job.last_error




async def test_poll_once_respects_concurrency(queue, registry, test_settings, monkeypatch):
    test_settings.worker_concurrency = 2
    release = asyncio.Event()
    processed = []

    worker = JobWorker(queue, registry, test_settings, queue_names=["shopify-orders"])

    async def blocking_process(job):
        await release.wait()
        processed.append(job.id)

    monkeypatch.setattr(worker, "process", blocking_process)
    for i in range(3):
        await queue.submit("shopify-orders", "order-created", {"order": {"id": i}})

    assert await worker.poll_once() == 2
    assert len(worker.active_jobs) == 2

    counts = (await queue.counts("shopify-orders"))[0]
    assert counts.active == 2
    assert counts.waiting == 1

    release.set()
    await worker.stop(timeout_s=5)

    assert len(processed) == 2


async def test_start_closes_handler_registration(queue, registry, test_settings):
    test_settings.worker_poll_interval_ms = 10
    worker = JobWorker(queue, registry, test_settings, queue_names=["shopify-orders"])
    registry.register_handler("shopify-orders", "order-created", OrderHandler())

    loop_task = asyncio.create_task(worker.start())
    await asyncio.sleep(0.05)

    assert worker.running
    assert registry.is_frozen()
    with pytest.raises(RuntimeError, match="registry is frozen"):
        registry.register_handler("shopify-orders", "refund-created", OrderHandler())

    await worker.stop(timeout_s=1)
    await asyncio.wait_for(loop_task, timeout=1)
    assert not worker.running
