"""
Webhook and sync endpoints.

Handlers acknowledge as soon as the job is stored. Processing outcomes are
only visible through the status endpoints.
"""

import json
from typing import Any

from fastapi import APIRouter, Header, Request

from jobflow.v1.core.container import GatewayDep, StatusServiceDep
from jobflow.v1.core.exceptions import ValidationError, create_success_response
from jobflow.v1.infra.jobs.status import JobStatusService
from jobflow.v1.ingestion.gateway import HISTORICAL_SYNC_QUEUE, IngestionGateway
from jobflow.v1.ingestion.schemas import WebhookAccepted

webhooks_router = APIRouter(prefix="/webhooks/shopify", tags=["webhooks"])
sync_router = APIRouter(prefix="/sync", tags=["sync"])


async def _json_body(request: Request) -> Any:
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError("Request body must be valid JSON") from None


@webhooks_router.post("/orders-create", response_model=dict)
async def order_created_webhook(
    request: Request,
    shop_domain: str | None = Header(default=None, alias="X-Shopify-Shop-Domain"),
    gateway: IngestionGateway = GatewayDep,
) -> dict[str, Any]:
    """Queue an order-created event. Redeliveries collapse onto the first job."""
    order = await _json_body(request)
    handle = await gateway.order_created(order, shop_domain)

    accepted = WebhookAccepted(
        job_id=handle.job_id, queue_name=handle.queue_name, deduplicated=handle.deduplicated
    )
    return create_success_response(
        data=accepted.model_dump(mode="json"),
        message="Order queued for processing",
        request_id=request.state.request_id,
    )


@webhooks_router.post("/refunds-create", response_model=dict)
async def refund_created_webhook(
    request: Request,
    shop_domain: str | None = Header(default=None, alias="X-Shopify-Shop-Domain"),
    gateway: IngestionGateway = GatewayDep,
) -> dict[str, Any]:
    """Queue a refund event. Every submission is its own job."""
    refund = await _json_body(request)
    handle = await gateway.refund_created(refund, shop_domain)

    accepted = WebhookAccepted(
        job_id=handle.job_id, queue_name=handle.queue_name, deduplicated=handle.deduplicated
    )
    return create_success_response(
        data=accepted.model_dump(mode="json"),
        message="Refund queued for processing",
        request_id=request.state.request_id,
    )


@sync_router.post("/{brand_id}/historical", response_model=dict)
async def start_historical_sync(
    brand_id: str,
    request: Request,
    gateway: IngestionGateway = GatewayDep,
) -> dict[str, Any]:
    """Start a full historical import for a brand with connected store credentials."""
    started = await gateway.historical_sync(brand_id)
    return create_success_response(
        data=started.model_dump(mode="json"),
        message="Historical sync started",
        request_id=request.state.request_id,
    )


@sync_router.get("/status/{job_id}", response_model=dict)
async def historical_sync_status(
    job_id: str,
    request: Request,
    status_service: JobStatusService = StatusServiceDep,
) -> dict[str, Any]:
    status = await status_service.status(HISTORICAL_SYNC_QUEUE, job_id)
    return create_success_response(
        data=status.model_dump(
            mode="json",
            include={"job_id", "state", "progress", "result", "error", "finished_on", "processed_on"},
        ),
        request_id=request.state.request_id,
    )
