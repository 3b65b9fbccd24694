"""
Process-lifetime service graph.

Built once by ``create_app()`` and stored on ``app.state.services``. Routes
reach components through the dependencies below, and tests build their own
container against an isolated database.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from fastapi import Depends, Request

from jobflow.config.settings import Settings
from jobflow.infra.database import Database
from jobflow.v1.catalog.repository import (
    BrandRepository,
    CityMetadataRepository,
    OrderLocationRepository,
)
from jobflow.v1.core.registries import JobRegistry
from jobflow.v1.infra.cache.registry import CacheRegistry, build_cache_registry
from jobflow.v1.infra.jobs.models import utcnow
from jobflow.v1.infra.jobs.queue import JobQueue
from jobflow.v1.infra.jobs.schemas import Backoff, RetryPolicy
from jobflow.v1.infra.jobs.status import JobStatusService
from jobflow.v1.ingestion import keys
from jobflow.v1.ingestion.gateway import IngestionGateway
from jobflow.v1.scheduling.ledger import TriggerLedger
from jobflow.v1.scheduling.partitioner import CityBatchPartitioner
from jobflow.v1.scheduling.revenue import RevenueRecalculator
from jobflow.v1.scheduling.scheduler import Scheduler
from jobflow.v1.scheduling.triggers import (
    BulkOperations,
    build_default_triggers,
    register_default_triggers,
)


@dataclass
class ServiceContainer:
    settings: Settings
    database: Database
    queue: JobQueue
    status: JobStatusService
    job_registry: JobRegistry
    caches: CacheRegistry
    gateway: IngestionGateway
    partitioner: CityBatchPartitioner
    scheduler: Scheduler

    async def close(self) -> None:
        self.scheduler.shutdown()
        await self.database.close()


def build_services(
    settings: Settings,
    clock: Callable[[], datetime] = utcnow,
    operations: BulkOperations | None = None,
    nonce_factory: Callable[[], str] = keys.millisecond_nonce,
) -> ServiceContainer:
    database = Database(settings)
    sessions = database.SessionLocal

    queue = JobQueue(sessions, settings.queue_definitions, clock=clock)
    brands = BrandRepository(sessions)

    partitioner = CityBatchPartitioner(
        queue,
        OrderLocationRepository(sessions),
        CityMetadataRepository(sessions),
        queue_name=settings.city_classification_queue,
        batch_size=settings.city_batch_size,
        priority=settings.city_batch_priority,
        retry_policy=RetryPolicy(
            max_attempts=settings.city_batch_max_attempts,
            backoff=Backoff(delay_ms=settings.city_batch_backoff_ms),
        ),
        clock=clock,
    )

    scheduler = Scheduler(
        TriggerLedger(sessions, clock=clock),
        misfire_grace_s=settings.scheduler_misfire_grace_s,
        clock=clock,
    )
    register_default_triggers(
        scheduler,
        build_default_triggers(
            settings,
            queue,
            partitioner,
            RevenueRecalculator(queue, brands, clock=clock),
            operations or BulkOperations(),
        ),
    )

    return ServiceContainer(
        settings=settings,
        database=database,
        queue=queue,
        status=JobStatusService(queue),
        job_registry=JobRegistry(),
        caches=build_cache_registry(settings.cache_definitions),
        gateway=IngestionGateway(
            queue, brands, nonce_factory=nonce_factory, clock=clock
        ),
        partitioner=partitioner,
        scheduler=scheduler,
    )


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


def get_queue(services: ServiceContainer = Depends(get_services)) -> JobQueue:
    return services.queue


def get_status_service(
    services: ServiceContainer = Depends(get_services),
) -> JobStatusService:
    return services.status


def get_cache_registry(services: ServiceContainer = Depends(get_services)) -> CacheRegistry:
    return services.caches


def get_gateway(services: ServiceContainer = Depends(get_services)) -> IngestionGateway:
    return services.gateway


def get_scheduler(services: ServiceContainer = Depends(get_services)) -> Scheduler:
    return services.scheduler


ServicesDep = Depends(get_services)
QueueDep = Depends(get_queue)
StatusServiceDep = Depends(get_status_service)
CacheRegistryDep = Depends(get_cache_registry)
GatewayDep = Depends(get_gateway)
SchedulerDep = Depends(get_scheduler)
