"""
City classification fan-out.

Yesterday's distinct order locations that have no classification result yet
are split into fixed-size chunks; every chunk becomes one queued job.
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta, timezone
from typing import Any, Protocol, TypeVar
from uuid import UUID

from jobflow.config.logging import get_logger
from jobflow.v1.infra.jobs.models import utcnow
from jobflow.v1.infra.jobs.queue import JobQueue
from jobflow.v1.infra.jobs.schemas import RetryPolicy, SubmitOptions

logger = get_logger(__name__)

T = TypeVar("T")

CLASSIFY_BATCH_KIND = "classify-cities-batch"


class LocationSource(Protocol):
    async def locations_between(
        self, start: datetime, end: datetime
    ) -> list[tuple[str, str]]: ...


class ClassificationStore(Protocol):
    async def existing_lookup_keys(self, lookup_keys: list[str]) -> set[str]: ...


def normalize(value: str) -> str:
    return value.strip().lower()


def lookup_key(city: str, state: str) -> str:
    return f"{normalize(city)}_{normalize(state)}_india"


@dataclass(frozen=True)
class CityCandidate:
    city: str
    state: str
    city_normalized: str
    lookup_key: str

    def as_payload(self) -> dict[str, str]:
        return {
            "city": self.city,
            "state": self.state,
            "cityNormalized": self.city_normalized,
            "lookupKey": self.lookup_key,
        }


@dataclass(frozen=True)
class CityBatch:
    batch_number: int
    total_batches: int
    cities: list[CityCandidate]


@dataclass
class BatchOutcome:
    batch_number: int
    size: int
    job_id: UUID | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class PartitionReport:
    window_start: datetime
    window_end: datetime
    candidates: int = 0
    new: int = 0
    batches: list[BatchOutcome] = field(default_factory=list)

    @property
    def queued(self) -> int:
        return sum(1 for batch in self.batches if batch.ok)

    @property
    def failed(self) -> int:
        return sum(1 for batch in self.batches if not batch.ok)

    def summary(self) -> dict[str, Any]:
        return {
            "window_start": self.window_start.isoformat(),
            "window_end": self.window_end.isoformat(),
            "candidates": self.candidates,
            "new": self.new,
            "queued": self.queued,
            "failed": self.failed,
            "batches": [
                {
                    "batch_number": batch.batch_number,
                    "size": batch.size,
                    "job_id": str(batch.job_id) if batch.job_id else None,
                    "error": batch.error,
                }
                for batch in self.batches
            ],
        }


def chunk(items: Sequence[T], size: int) -> list[list[T]]:
    """Split ``items`` into consecutive chunks of at most ``size``, keeping order."""
    if size < 1:
        raise ValueError("chunk size must be positive")
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


def previous_utc_day(now: datetime) -> tuple[datetime, datetime]:
    """``[yesterday 00:00, today 00:00)`` in UTC."""
    today = datetime.combine(now.astimezone(timezone.utc).date(), time.min, tzinfo=timezone.utc)
    return today - timedelta(days=1), today


def distinct_candidates(locations: list[tuple[str, str]]) -> list[CityCandidate]:
    """One candidate per lookup key, first spelling seen wins."""
    seen: dict[str, CityCandidate] = {}
    for city, state in locations:
        if not city or not state or not city.strip() or not state.strip():
            continue
        key = lookup_key(city, state)
        if key not in seen:
            seen[key] = CityCandidate(
                city=city,
                state=state,
                city_normalized=normalize(city),
                lookup_key=key,
            )
    return list(seen.values())


class CityBatchPartitioner:
    def __init__(
        self,
        queue: JobQueue,
        locations: LocationSource,
        classifications: ClassificationStore,
        queue_name: str = "city-classification",
        batch_size: int = 20,
        priority: int = 5,
        retry_policy: RetryPolicy | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.queue = queue
        self.locations = locations
        self.classifications = classifications
        self.queue_name = queue_name
        self.batch_size = batch_size
        self.priority = priority
        self.retry_policy = retry_policy or RetryPolicy.model_validate(
            {"max_attempts": 3, "backoff": {"type": "exponential", "delay_ms": 2000}}
        )
        self._clock = clock

    async def collect_new(self, start: datetime, end: datetime) -> tuple[int, list[CityCandidate]]:
        """Distinct candidates in the window, and the subset not yet classified."""
        candidates = distinct_candidates(await self.locations.locations_between(start, end))
        existing = await self.classifications.existing_lookup_keys(
            [c.lookup_key for c in candidates]
        )
        return len(candidates), [c for c in candidates if c.lookup_key not in existing]

    def partition(self, cities: list[CityCandidate]) -> list[CityBatch]:
        chunks = chunk(cities, self.batch_size)
        return [
            CityBatch(batch_number=index + 1, total_batches=len(chunks), cities=members)
            for index, members in enumerate(chunks)
        ]

    async def run(self) -> PartitionReport:
        """Queue one classification job per chunk of yesterday's new cities."""
        start, end = previous_utc_day(self._clock())
        report = PartitionReport(window_start=start, window_end=end)

        report.candidates, new_cities = await self.collect_new(start, end)
        report.new = len(new_cities)
        if not new_cities:
            logger.info(
                "No new cities to classify",
                candidates=report.candidates,
                window_start=start.isoformat(),
            )
            return report

        batches = self.partition(new_cities)
        logger.info(
            "Queueing city classification batches",
            new_cities=report.new,
            batches=len(batches),
        )

        options = SubmitOptions(priority=self.priority, retry_policy=self.retry_policy)
        for batch in batches:
            outcome = BatchOutcome(batch_number=batch.batch_number, size=len(batch.cities))
            try:
                handle = await self.queue.submit(
                    self.queue_name,
                    CLASSIFY_BATCH_KIND,
                    {
                        "type": "batch",
                        "cities": [c.as_payload() for c in batch.cities],
                        "batchNumber": batch.batch_number,
                        "totalBatches": batch.total_batches,
                    },
                    options,
                )
                outcome.job_id = handle.job_id
            except Exception as e:
                logger.exception(
                    "Failed to queue city batch",
                    batch_number=batch.batch_number,
                    total_batches=batch.total_batches,
                )
                outcome.error = str(e)
            report.batches.append(outcome)

        logger.info(
            "City classification batches queued",
            queued=report.queued,
            failed=report.failed,
        )
        return report
