"""
Default recurring triggers.

Metrics, email and competitor-ad refresh call a bulk operation inline.
City classification fans out through the batch partitioner and revenue
recalculation queues one job per credentialed brand. Queue retention
deletes finished jobs past each queue's retention bound.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from jobflow.config.logging import get_logger
from jobflow.config.settings import Settings
from jobflow.v1.infra.jobs.models import JobState
from jobflow.v1.infra.jobs.queue import JobQueue
from jobflow.v1.scheduling.partitioner import CityBatchPartitioner
from jobflow.v1.scheduling.revenue import RevenueRecalculator
from jobflow.v1.scheduling.scheduler import ScheduledTrigger, Scheduler

logger = get_logger(__name__)

BulkOperation = Callable[[], Awaitable[Any]]

METRICS_ROLLUP = "metrics-rollup"
EMAIL_REPORT = "email-report"
COMPETITOR_ADS = "competitor-ads-refresh"
CITY_CLASSIFICATION = "city-classification"
QUEUE_RETENTION = "queue-retention"
REVENUE_RECALCULATION = "revenue-recalculation"


def unconfigured(name: str) -> BulkOperation:
    async def _operation() -> dict[str, Any]:
        logger.warning("Bulk operation not configured", operation=name)
        return {"status": "not_configured", "operation": name}

    return _operation


@dataclass
class BulkOperations:
    """Entry points of the external batch computations called inline by triggers."""

    compute_daily_metrics: BulkOperation = field(
        default_factory=lambda: unconfigured("compute_daily_metrics")
    )
    send_daily_email_reports: BulkOperation = field(
        default_factory=lambda: unconfigured("send_daily_email_reports")
    )
    refresh_competitor_ads: BulkOperation = field(
        default_factory=lambda: unconfigured("refresh_competitor_ads")
    )


def queue_retention_action(queue: JobQueue, settings: Settings) -> BulkOperation:
    async def _clean() -> dict[str, dict[str, int]]:
        removed: dict[str, dict[str, int]] = {}
        for name, definition in settings.queue_definitions.items():
            bounds = {
                JobState.COMPLETED: definition.keep_completed_s,
                JobState.FAILED: definition.keep_failed_s,
            }
            for state, keep_s in bounds.items():
                if keep_s is None:
                    continue
                count = await queue.clean(name, state, timedelta(seconds=keep_s))
                removed.setdefault(name, {})[state.value] = count
        return removed

    return _clean


def build_default_triggers(
    settings: Settings,
    queue: JobQueue,
    partitioner: CityBatchPartitioner,
    recalculator: RevenueRecalculator,
    operations: BulkOperations,
) -> list[ScheduledTrigger]:
    return [
        ScheduledTrigger(
            name=METRICS_ROLLUP,
            cron=settings.metrics_rollup_cron,
            timezone=settings.metrics_rollup_tz,
            action=operations.compute_daily_metrics,
            description="Daily metrics rollup for all brands",
        ),
        ScheduledTrigger(
            name=EMAIL_REPORT,
            cron=settings.email_report_cron,
            timezone=settings.email_report_tz,
            action=operations.send_daily_email_reports,
            description="Daily email digest",
        ),
        ScheduledTrigger(
            name=COMPETITOR_ADS,
            cron=settings.competitor_ads_cron,
            timezone=settings.competitor_ads_tz,
            action=operations.refresh_competitor_ads,
            description="Competitor ad refresh",
        ),
        ScheduledTrigger(
            name=CITY_CLASSIFICATION,
            cron=settings.city_classification_cron,
            timezone=settings.city_classification_tz,
            action=partitioner.run,
            description="Queue yesterday's unclassified cities in batches",
        ),
        ScheduledTrigger(
            name=REVENUE_RECALCULATION,
            cron=settings.revenue_recalculation_cron,
            timezone=settings.revenue_recalculation_tz,
            action=recalculator.run,
            description="Queue yesterday's revenue recalculation per brand",
        ),
        ScheduledTrigger(
            name=QUEUE_RETENTION,
            cron=settings.queue_retention_cron,
            timezone=settings.queue_retention_tz,
            action=queue_retention_action(queue, settings),
            description="Delete finished jobs past their retention",
        ),
    ]


def register_default_triggers(scheduler: Scheduler, triggers: list[ScheduledTrigger]) -> None:
    for trigger in triggers:
        scheduler.register(trigger)
    logger.info("Registered triggers", triggers=scheduler.names())
