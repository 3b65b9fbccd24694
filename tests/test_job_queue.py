"""Tests for job submission, deduplication, counts, cleanup and the retry lifecycle."""

from datetime import timedelta
from uuid import uuid4

import pytest

from jobflow.v1.core.exceptions import NotFoundError, TerminalJobError, ValidationError
from jobflow.v1.infra.jobs.models import JobState
from jobflow.v1.infra.jobs.queue import RETRY_SCHEDULED
from jobflow.v1.infra.jobs.schemas import Backoff, RetryPolicy, SubmitOptions


async def test_submit_creates_waiting_job_with_queue_defaults(queue):
    handle = await queue.submit("shopify-orders", "order-created", {"order": {"id": 1}})

    assert handle.deduplicated is False
    assert handle.state == "waiting"

    job = await queue.get_job("shopify-orders", handle.job_id)
    assert job.kind == "order-created"
    assert job.payload == {"order": {"id": 1}}
    assert job.max_attempts == 3
    assert job.backoff_type == "exponential"
    assert job.backoff_delay_ms == 2000
    assert job.priority == 5
    assert job.attempts == 0


async def test_submit_requires_queue_name_and_kind(queue):
    with pytest.raises(ValidationError, match="queue_name is required"):
        await queue.submit("", "order-created")

    with pytest.raises(ValidationError, match="kind is required"):
        await queue.submit("shopify-orders", "  ")


async def test_submit_to_undeclared_queue_is_rejected(queue):
    with pytest.raises(ValidationError, match="Unknown queue"):
        await queue.submit("no-such-queue", "anything")


async def test_repeated_submissions_with_same_dedup_key_return_first_job(queue):
    options = SubmitOptions(dedup_key="order-42")

    first = await queue.submit("shopify-orders", "order-created", {"n": 1}, options)
    handles = [
        await queue.submit("shopify-orders", "order-created", {"n": i}, options)
        for i in range(2, 6)
    ]

    assert all(h.job_id == first.job_id for h in handles)
    assert all(h.deduplicated for h in handles)

    counts = await queue.counts("shopify-orders")
    assert counts[0].waiting == 1

    # The original payload is kept
    job = await queue.get_job("shopify-orders", first.job_id)
    assert job.payload == {"n": 1}


async def test_dedup_keys_are_scoped_per_queue(queue):
    options = SubmitOptions(dedup_key="shared")

    a = await queue.submit("shopify-orders", "order-created", {}, options)
    b = await queue.submit("historical-sync", "sync-historical", {}, options)

    assert a.job_id != b.job_id
    assert not b.deduplicated


async def test_dedup_key_is_released_once_job_is_terminal(queue):
    options = SubmitOptions(dedup_key="historical-b1")
    first = await queue.submit("historical-sync", "sync-historical", {}, options)

    claimed = await queue.claim_next("historical-sync", "worker-1")
    assert claimed.id == first.job_id
    await queue.complete(first.job_id, {"imported": 10})

    second = await queue.submit("historical-sync", "sync-historical", {}, options)
    assert second.job_id != first.job_id
    assert second.deduplicated is False


async def test_racing_submission_collapses_onto_winner(queue, monkeypatch):
    """The unique index catches a submission that missed the pre-insert lookup."""
    options = SubmitOptions(dedup_key="order-7")
    winner = await queue.submit("shopify-orders", "order-created", {}, options)

    real_find_active = queue._find_active
    lookups = []

    async def find_active_missing_first(session, queue_name, dedup_key):
        lookups.append(dedup_key)
        if len(lookups) == 1:
            return None
        return await real_find_active(session, queue_name, dedup_key)

    monkeypatch.setattr(queue, "_find_active", find_active_missing_first)

    loser = await queue.submit("shopify-orders", "order-created", {}, options)

    assert loser.deduplicated is True
    assert loser.job_id == winner.job_id
    assert len(lookups) == 2

    counts = await queue.counts("shopify-orders")
    assert counts[0].total == 1


async def test_get_job_unknown_id_or_wrong_queue(queue):
    handle = await queue.submit("shopify-orders", "order-created")

    with pytest.raises(NotFoundError):
        await queue.get_job("shopify-orders", uuid4())

    with pytest.raises(NotFoundError):
        await queue.get_job("shopify-orders", "not-a-uuid")

    with pytest.raises(NotFoundError):
        await queue.get_job("historical-sync", handle.job_id)

    with pytest.raises(NotFoundError, match="Queue 'missing' not found"):
        await queue.get_job("missing", handle.job_id)


async def test_get_state(queue):
    handle = await queue.submit("shopify-orders", "order-created")
    assert await queue.get_state(handle.job_id) == "waiting"

    await queue.claim_next("shopify-orders", "worker-1")
    assert await queue.get_state(str(handle.job_id)) == "active"

    with pytest.raises(NotFoundError):
        await queue.get_state(uuid4())


async def test_claim_orders_by_priority_then_age(queue, clock):
    low = await queue.submit("shopify-orders", "k", {}, SubmitOptions(priority=8))
    clock.advance(seconds=1)
    high = await queue.submit("shopify-orders", "k", {}, SubmitOptions(priority=1))
    clock.advance(seconds=1)
    high_later = await queue.submit("shopify-orders", "k", {}, SubmitOptions(priority=1))

    order = []
    while (job := await queue.claim_next("shopify-orders", "worker-1")) is not None:
        order.append(job.id)

    assert order == [high.job_id, high_later.job_id, low.job_id]


async def test_claim_skips_delayed_jobs(queue, clock):
    await queue.submit("shopify-orders", "k", {}, SubmitOptions(delay_ms=5000))

    assert await queue.claim_next("shopify-orders", "worker-1") is None

    counts = (await queue.counts("shopify-orders"))[0]
    assert counts.waiting == 1
    assert counts.delayed == 1

    clock.advance(seconds=5)
    job = await queue.claim_next("shopify-orders", "worker-1")
    assert job is not None
    assert job.state == "active"
    assert job.attempts == 1
    assert job.locked_by == "worker-1"


async def test_retry_policy_exponential_backoff_until_failed(queue, clock):
    """maxAttempts=3, exponential, 1000 ms: retries after ~1000 ms then ~2000 ms, then failed."""
    policy = RetryPolicy(max_attempts=3, backoff=Backoff(type="exponential", delay_ms=1000))
    handle = await queue.submit(
        "shopify-orders", "order-created", {}, SubmitOptions(retry_policy=policy)
    )

    delays = []
    for _ in range(3):
        job = await queue.claim_next("shopify-orders", "worker-1")
        assert job is not None
        failed_at = clock()
        job = await queue.fail(job.id, "upstream timeout")

        if job.state == JobState.WAITING.value:
            assert job.error_code == RETRY_SCHEDULED
            run_at = job.run_at if job.run_at.tzinfo else job.run_at.replace(tzinfo=failed_at.tzinfo)
            delay = run_at - failed_at
            delays.append(delay)

            # Not claimable before the backoff elapses
            clock.advance(milliseconds=delay.total_seconds() * 1000 - 1)
            assert await queue.claim_next("shopify-orders", "worker-1") is None
            clock.advance(milliseconds=1)

    assert delays == [timedelta(milliseconds=1000), timedelta(milliseconds=2000)]

    status = await queue.get_job("shopify-orders", handle.job_id)
    assert status.state == "failed"
    assert status.attempts == 3
    assert status.error_code == TerminalJobError.code
    assert status.last_error == "upstream timeout"
    assert status.finished_on is not None

    # Exhausted jobs are never picked up again
    clock.advance(hours=1)
    assert await queue.claim_next("shopify-orders", "worker-1") is None


async def test_fixed_backoff_uses_constant_delay(queue, clock):
    handle = await queue.submit("revenue-calculation", "calculate")

    job = await queue.claim_next("revenue-calculation", "worker-1")
    failed_at = clock()
    job = await queue.fail(job.id, "boom")

    assert job.state == "waiting"
    run_at = job.run_at if job.run_at.tzinfo else job.run_at.replace(tzinfo=failed_at.tzinfo)
    assert run_at - failed_at == timedelta(milliseconds=5000)

    clock.advance(seconds=5)
    job = await queue.claim_next("revenue-calculation", "worker-1")
    job = await queue.fail(job.id, "boom again")
    assert job.state == "failed"
    assert (await queue.get_state(handle.job_id)) == "failed"


async def test_non_retryable_failure_is_terminal_immediately(queue):
    await queue.submit("shopify-orders", "order-created")
    job = await queue.claim_next("shopify-orders", "worker-1")

    job = await queue.fail(job.id, "bad payload", retryable=False)

    assert job.state == "failed"
    assert job.attempts == 1
    assert job.error_code == TerminalJobError.code


async def test_worker_transitions_require_active_job(queue):
    handle = await queue.submit("shopify-orders", "order-created")

    with pytest.raises(ValidationError, match="is not active"):
        await queue.complete(handle.job_id)

    with pytest.raises(NotFoundError):
        await queue.update_progress(uuid4(), 10)


async def test_counts_for_all_declared_queues(queue, test_settings):
    await queue.submit("shopify-orders", "order-created")
    await queue.submit("shopify-orders", "order-created")
    await queue.submit("historical-sync", "sync-historical")
    await queue.claim_next("historical-sync", "worker-1")

    counts = {c.queue_name: c for c in await queue.counts()}

    assert set(counts) == set(test_settings.queue_definitions)
    assert counts["shopify-orders"].waiting == 2
    assert counts["historical-sync"].active == 1
    assert counts["city-classification"].total == 0
    assert counts["shopify-orders"].as_dict()["total"] == 2


async def test_counts_unknown_queue(queue):
    with pytest.raises(NotFoundError):
        await queue.counts("missing")


async def test_clean_removes_only_old_terminal_jobs(queue, clock):
    old = await queue.submit("shopify-orders", "k")
    await queue.claim_next("shopify-orders", "w")
    await queue.complete(old.job_id, {})

    clock.advance(hours=2)
    recent = await queue.submit("shopify-orders", "k")
    await queue.claim_next("shopify-orders", "w")
    await queue.complete(recent.job_id, {})
    pending = await queue.submit("shopify-orders", "k")

    deleted = await queue.clean("shopify-orders", JobState.COMPLETED, timedelta(hours=1))

    assert deleted == 1
    with pytest.raises(NotFoundError):
        await queue.get_job("shopify-orders", old.job_id)
    assert (await queue.get_job("shopify-orders", recent.job_id)).state == "completed"
    assert (await queue.get_job("shopify-orders", pending.job_id)).state == "waiting"


async def test_clean_rejects_non_terminal_state(queue):
    with pytest.raises(ValidationError):
        await queue.clean("shopify-orders", JobState.WAITING, timedelta(hours=1))
