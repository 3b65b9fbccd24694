"""
Daily revenue recalculation.

Every brand with store credentials gets one recalculation job for
yesterday. The dedup key carries the date, so a second fire on the same day
collapses onto the job already waiting.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Protocol
from uuid import UUID

from jobflow.config.logging import get_logger
from jobflow.v1.catalog.models import Brand
from jobflow.v1.infra.jobs.models import utcnow
from jobflow.v1.infra.jobs.queue import JobQueue
from jobflow.v1.infra.jobs.schemas import SubmitOptions
from jobflow.v1.ingestion import keys
from jobflow.v1.scheduling.partitioner import previous_utc_day

logger = get_logger(__name__)

REVENUE_QUEUE = "revenue-calculation"
RECALCULATE_REVENUE_KIND = "calculate-revenue-cron"


class CredentialedBrands(Protocol):
    async def with_store_credentials(self) -> list[Brand]: ...


@dataclass
class BrandOutcome:
    brand_id: str
    job_id: UUID | None = None
    deduplicated: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class RecalculationReport:
    day: date
    brands: list[BrandOutcome] = field(default_factory=list)

    @property
    def queued(self) -> int:
        return sum(1 for b in self.brands if b.ok and not b.deduplicated)

    @property
    def failed(self) -> int:
        return sum(1 for b in self.brands if not b.ok)

    def summary(self) -> dict[str, Any]:
        return {
            "date": self.day.isoformat(),
            "brands": len(self.brands),
            "queued": self.queued,
            "failed": self.failed,
            "outcomes": [
                {
                    "brand_id": b.brand_id,
                    "job_id": str(b.job_id) if b.job_id else None,
                    "deduplicated": b.deduplicated,
                    "error": b.error,
                }
                for b in self.brands
            ],
        }


class RevenueRecalculator:
    def __init__(
        self,
        queue: JobQueue,
        brands: CredentialedBrands,
        queue_name: str = REVENUE_QUEUE,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.queue = queue
        self.brands = brands
        self.queue_name = queue_name
        self._clock = clock

    async def run(self) -> RecalculationReport:
        """Queue one recalculation per credentialed brand for the prior UTC day."""
        start, _ = previous_utc_day(self._clock())
        day = start.date()
        report = RecalculationReport(day=day)

        for brand in await self.brands.with_store_credentials():
            outcome = BrandOutcome(brand_id=brand.id)
            try:
                handle = await self.queue.submit(
                    self.queue_name,
                    RECALCULATE_REVENUE_KIND,
                    {"brandId": brand.id, "date": day.isoformat()},
                    SubmitOptions(dedup_key=keys.revenue_recalculation_key(brand.id, day)),
                )
                outcome.job_id = handle.job_id
                outcome.deduplicated = handle.deduplicated
            except Exception as e:
                logger.exception("Failed to queue revenue recalculation", brand_id=brand.id)
                outcome.error = str(e)
            report.brands.append(outcome)

        logger.info(
            "Revenue recalculation queued",
            date=day.isoformat(),
            brands=len(report.brands),
            queued=report.queued,
            failed=report.failed,
        )
        return report
