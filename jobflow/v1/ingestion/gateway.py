"""
Ingestion gateway: turns inbound events into queued jobs.

Every method validates just enough structure to build a dedup key, submits,
and returns as soon as the job is stored. Processing outcomes are only
visible through the job status service.
"""

from collections.abc import Callable
from datetime import datetime
from typing import Any

from jobflow.config.logging import get_logger
from jobflow.v1.catalog.repository import BrandRepository
from jobflow.v1.core.exceptions import NotFoundError, ValidationError
from jobflow.v1.infra.jobs.models import utcnow
from jobflow.v1.infra.jobs.queue import JobQueue
from jobflow.v1.infra.jobs.schemas import JobHandle, SubmitOptions
from jobflow.v1.ingestion import keys
from jobflow.v1.ingestion.schemas import HistoricalSyncStarted

logger = get_logger(__name__)

ORDERS_QUEUE = "shopify-orders"
HISTORICAL_SYNC_QUEUE = "historical-sync"


def _missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class IngestionGateway:
    def __init__(
        self,
        queue: JobQueue,
        brands: BrandRepository,
        nonce_factory: Callable[[], str] = keys.millisecond_nonce,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.queue = queue
        self.brands = brands
        self._nonce = nonce_factory
        self._clock = clock

    async def order_created(
        self, order: dict[str, Any] | None, shop_domain: str | None
    ) -> JobHandle:
        if not isinstance(order, dict) or _missing(order.get("id")):
            raise ValidationError("Invalid order data")

        handle = await self.queue.submit(
            ORDERS_QUEUE,
            "order-created",
            {
                "type": "order_created",
                "order": order,
                "shop_domain": shop_domain,
                "received_at": self._clock().isoformat(),
            },
            SubmitOptions(dedup_key=keys.order_created_key(order["id"])),
        )
        logger.info(
            "Queued order creation",
            order_id=str(order["id"]),
            shop_domain=shop_domain,
            job_id=str(handle.job_id),
            deduplicated=handle.deduplicated,
        )
        return handle

    async def refund_created(
        self, refund: dict[str, Any] | None, shop_domain: str | None
    ) -> JobHandle:
        if not isinstance(refund, dict) or _missing(refund.get("order_id")):
            raise ValidationError("Invalid refund data")

        order_id = refund["order_id"]
        handle = await self.queue.submit(
            ORDERS_QUEUE,
            "refund-created",
            {
                "type": "refund_created",
                "refund": refund,
                "order_id": order_id,
                "shop_domain": shop_domain,
                "received_at": self._clock().isoformat(),
            },
            SubmitOptions(dedup_key=keys.refund_created_key(order_id, self._nonce())),
        )
        logger.info(
            "Queued refund",
            order_id=str(order_id),
            shop_domain=shop_domain,
            job_id=str(handle.job_id),
        )
        return handle

    async def historical_sync(self, brand_id: str) -> HistoricalSyncStarted:
        """
        Raises:
            NotFoundError: the brand does not exist
            ValidationError: the brand has no stored store credentials
        """
        if _missing(brand_id):
            raise ValidationError("brand_id is required")

        brand = await self.brands.get(brand_id)
        if brand is None:
            raise NotFoundError("Brand not found", details={"brand_id": brand_id})
        if not brand.has_store_credentials():
            raise ValidationError(
                "Shopify not connected for this brand", details={"brand_id": brand_id}
            )

        handle = await self.queue.submit(
            HISTORICAL_SYNC_QUEUE,
            "sync-historical",
            {"brand_id": brand.id, "shopify_domain": brand.shopify_domain},
            SubmitOptions(dedup_key=keys.historical_sync_key(brand.id)),
        )
        logger.info(
            "Started historical sync",
            brand_id=brand.id,
            brand=brand.name,
            job_id=str(handle.job_id),
            deduplicated=handle.deduplicated,
        )
        return HistoricalSyncStarted(
            job_id=handle.job_id, brand=brand.name, deduplicated=handle.deduplicated
        )
