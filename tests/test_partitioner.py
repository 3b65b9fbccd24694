"""Tests for the city classification batch partitioner."""

from datetime import UTC, datetime, timedelta

import pytest

from jobflow.v1.catalog.models import CityMetadata, Order
from jobflow.v1.catalog.repository import CityMetadataRepository, OrderLocationRepository
from jobflow.v1.scheduling.partitioner import (
    CLASSIFY_BATCH_KIND,
    CityBatchPartitioner,
    chunk,
    distinct_candidates,
    lookup_key,
    previous_utc_day,
)


class StaticLocations:
    def __init__(self, locations):
        self.locations = locations
        self.windows = []

    async def locations_between(self, start, end):
        self.windows.append((start, end))
        return list(self.locations)


class StaticClassifications:
    def __init__(self, existing=()):
        self.existing = set(existing)

    async def existing_lookup_keys(self, lookup_keys):
        return self.existing & set(lookup_keys)


def make_partitioner(queue, clock, locations, existing=()):
    return CityBatchPartitioner(
        queue,
        StaticLocations(locations),
        StaticClassifications(existing),
        clock=clock,
    )


def test_lookup_key_is_trimmed_and_lower_cased():
    assert lookup_key("  Mumbai ", "MAHARASHTRA") == "mumbai_maharashtra_india"


def test_distinct_candidates_keeps_first_spelling_and_order():
    candidates = distinct_candidates(
        [
            ("Pune", "Maharashtra"),
            ("Delhi", "Delhi"),
            (" pune", "maharashtra "),
            ("", "Goa"),
            ("Panaji", "   "),
        ]
    )

    assert [c.lookup_key for c in candidates] == ["pune_maharashtra_india", "delhi_delhi_india"]
    assert candidates[0].city == "Pune"
    assert candidates[0].city_normalized == "pune"


def test_chunk_preserves_order():
    assert chunk(list(range(45)), 20) == [
        list(range(0, 20)),
        list(range(20, 40)),
        list(range(40, 45)),
    ]
    assert chunk([], 20) == []
    with pytest.raises(ValueError):
        chunk([1], 0)


def test_previous_utc_day_window():
    start, end = previous_utc_day(datetime(2026, 3, 14, 0, 30, tzinfo=UTC))

    assert start == datetime(2026, 3, 13, tzinfo=UTC)
    assert end == datetime(2026, 3, 14, tzinfo=UTC)


async def test_45_new_cities_become_three_batches(queue, clock):
    locations = [(f"City {i}", "Karnataka") for i in range(45)]
    partitioner = make_partitioner(queue, clock, locations)

    report = await partitioner.run()

    assert report.new == 45
    assert report.queued == 3
    assert report.failed == 0
    assert [b.size for b in report.batches] == [20, 20, 5]

    jobs = [await queue.get_job("city-classification", b.job_id) for b in report.batches]
    assert [j.payload["batchNumber"] for j in jobs] == [1, 2, 3]
    assert {j.payload["totalBatches"] for j in jobs} == {3}
    assert all(j.payload["type"] == "batch" for j in jobs)
    assert all(j.kind == CLASSIFY_BATCH_KIND for j in jobs)
    assert [len(j.payload["cities"]) for j in jobs] == [20, 20, 5]

    # Input order survives chunking
    first_cities = [c["city"] for c in jobs[0].payload["cities"]]
    assert first_cities == [f"City {i}" for i in range(20)]
    assert jobs[2].payload["cities"][-1]["lookupKey"] == "city 44_karnataka_india"


async def test_batches_carry_retry_policy_and_priority(queue, clock):
    partitioner = make_partitioner(queue, clock, [("Surat", "Gujarat")])

    report = await partitioner.run()
    job = await queue.get_job("city-classification", report.batches[0].job_id)

    assert job.max_attempts == 3
    assert job.backoff_type == "exponential"
    assert job.backoff_delay_ms == 2000
    assert job.priority == 5


async def test_city_entries_use_classifier_field_names(queue, clock):
    partitioner = make_partitioner(queue, clock, [(" Pune", "Maharashtra")])

    report = await partitioner.run()
    job = await queue.get_job("city-classification", report.batches[0].job_id)

    assert job.payload["cities"] == [
        {
            "city": " Pune",
            "state": "Maharashtra",
            "cityNormalized": "pune",
            "lookupKey": "pune_maharashtra_india",
        }
    ]


async def test_already_classified_cities_are_skipped(queue, clock):
    locations = [("Mumbai", "Maharashtra"), ("Nagpur", "Maharashtra")]
    partitioner = make_partitioner(
        queue, clock, locations, existing={"mumbai_maharashtra_india"}
    )

    report = await partitioner.run()

    assert report.candidates == 2
    assert report.new == 1
    job = await queue.get_job("city-classification", report.batches[0].job_id)
    assert [c["city"] for c in job.payload["cities"]] == ["Nagpur"]


async def test_no_new_cities_produces_no_jobs(queue, clock):
    locations = [("Mumbai", "Maharashtra")]
    partitioner = make_partitioner(
        queue, clock, locations, existing={"mumbai_maharashtra_india"}
    )

    report = await partitioner.run()

    assert report.new == 0
    assert report.batches == []
    counts = (await queue.counts("city-classification"))[0]
    assert counts.total == 0


async def test_one_failed_chunk_does_not_stop_the_others(queue, clock, monkeypatch):
    locations = [(f"Town {i}", "Kerala") for i in range(60)]
    partitioner = make_partitioner(queue, clock, locations)

    real_submit = queue.submit

    async def flaky_submit(queue_name, kind, payload=None, options=None):
        if payload["batchNumber"] == 2:
            raise RuntimeError("queue store unavailable")
        return await real_submit(queue_name, kind, payload, options)

    monkeypatch.setattr(queue, "submit", flaky_submit)

    report = await partitioner.run()

    assert [b.ok for b in report.batches] == [True, False, True]
    assert report.batches[1].error == "queue store unavailable"
    assert report.queued == 2
    assert report.failed == 1
    assert report.summary()["failed"] == 1


async def test_reads_previous_utc_day_from_order_store(services, sessions, queue, clock):
    """Orders outside yesterday's window and cities with results are ignored."""
    yesterday = clock() - timedelta(days=1)
    async with sessions() as session:
        session.add_all(
            [
                Order(id="o1", brand_id="b", city="Jaipur", state="Rajasthan",
                      order_created_at=yesterday.replace(hour=9)),
                Order(id="o2", brand_id="b", city=" jaipur ", state="rajasthan",
                      order_created_at=yesterday.replace(hour=10)),
                Order(id="o3", brand_id="b", city="Kochi", state="Kerala",
                      order_created_at=yesterday.replace(hour=11)),
                Order(id="o4", brand_id="b", city="Indore", state="Madhya Pradesh",
                      order_created_at=clock().replace(hour=1)),
                Order(id="o5", brand_id="b", city=None, state="Goa",
                      order_created_at=yesterday.replace(hour=12)),
                CityMetadata(lookup_key="kochi_kerala_india", city="Kochi", state="Kerala",
                             city_normalized="kochi"),
            ]
        )
        await session.commit()

    partitioner = CityBatchPartitioner(
        queue,
        OrderLocationRepository(sessions),
        CityMetadataRepository(sessions),
        clock=clock,
    )

    report = await partitioner.run()

    assert report.candidates == 2
    assert report.new == 1
    job = await queue.get_job("city-classification", report.batches[0].job_id)
    assert job.payload["cities"] == [
        {
            "city": "Jaipur",
            "state": "Rajasthan",
            "cityNormalized": "jaipur",
            "lookupKey": "jaipur_rajasthan_india",
        }
    ]


async def test_container_partitioner_uses_settings(services):
    partitioner = services.partitioner

    assert partitioner.queue_name == "city-classification"
    assert partitioner.batch_size == 20
    assert partitioner.retry_policy.max_attempts == 3
    assert partitioner.retry_policy.backoff.delay_ms == 2000
