"""Tests for webhook and sync ingestion through the gateway."""

import pytest

from jobflow.v1.catalog.models import Brand
from jobflow.v1.core.exceptions import NotFoundError, ValidationError
from jobflow.v1.ingestion import keys
from jobflow.v1.ingestion.gateway import HISTORICAL_SYNC_QUEUE, ORDERS_QUEUE


@pytest.fixture
def gateway(services):
    return services.gateway


@pytest.fixture
async def brands(sessions):
    async with sessions() as session:
        session.add_all(
            [
                Brand(
                    id="brand-1",
                    name="Acme Apparel",
                    shopify_domain="acme.myshopify.com",
                    shopify_access_token="shpat_secret",
                ),
                Brand(id="brand-2", name="No Store Co", shopify_domain=None),
            ]
        )
        await session.commit()


def test_dedup_keys():
    assert keys.order_created_key(1001) == "order-1001"
    assert keys.order_created_key("1001") == keys.order_created_key(1001)
    assert keys.refund_created_key(1001, "1700000000000") == "refund-1001-1700000000000"
    assert keys.historical_sync_key("brand-1") == "historical-brand-1"
    assert keys.millisecond_nonce().isdigit()


async def test_order_created_redeliveries_collapse(gateway, queue):
    order = {"id": 5001, "total_price": "19.99"}

    first = await gateway.order_created(order, "acme.myshopify.com")
    again = await gateway.order_created(order, "acme.myshopify.com")

    assert first.queue_name == ORDERS_QUEUE
    assert again.job_id == first.job_id
    assert again.deduplicated is True

    job = await queue.get_job(ORDERS_QUEUE, first.job_id)
    assert job.kind == "order-created"
    assert job.dedup_key == "order-5001"
    assert job.payload["order"] == order
    assert job.payload["shop_domain"] == "acme.myshopify.com"


async def test_each_refund_is_its_own_job(gateway, queue):
    refund = {"order_id": 5001, "amount": "5.00"}

    handles = [await gateway.refund_created(refund, "acme.myshopify.com") for _ in range(3)]

    assert len({h.job_id for h in handles}) == 3
    assert not any(h.deduplicated for h in handles)

    dedup_keys = [(await queue.get_job(ORDERS_QUEUE, h.job_id)).dedup_key for h in handles]
    assert dedup_keys == ["refund-5001-1", "refund-5001-2", "refund-5001-3"]


async def test_refunds_and_orders_for_same_order_do_not_collide(gateway):
    order = await gateway.order_created({"id": 77}, None)
    refund = await gateway.refund_created({"order_id": 77}, None)
    order_again = await gateway.order_created({"id": 77}, None)

    assert refund.job_id != order.job_id
    assert order_again.job_id == order.job_id


@pytest.mark.parametrize("body", [None, {}, {"id": None}, {"id": "  "}, ["not", "a", "dict"]])
async def test_invalid_order_is_rejected(gateway, body):
    with pytest.raises(ValidationError, match="Invalid order data"):
        await gateway.order_created(body, "acme.myshopify.com")


@pytest.mark.parametrize("body", [None, {}, {"amount": "1.00"}])
async def test_invalid_refund_is_rejected(gateway, body):
    with pytest.raises(ValidationError, match="Invalid refund data"):
        await gateway.refund_created(body, "acme.myshopify.com")


async def test_historical_sync_unknown_brand(gateway, brands):
    with pytest.raises(NotFoundError, match="Brand not found"):
        await gateway.historical_sync("missing-brand")


async def test_historical_sync_requires_credentials(gateway, brands):
    with pytest.raises(ValidationError, match="Shopify not connected"):
        await gateway.historical_sync("brand-2")


async def test_historical_sync_one_in_flight_per_brand(gateway, brands, queue):
    started = await gateway.historical_sync("brand-1")
    again = await gateway.historical_sync("brand-1")

    assert started.brand == "Acme Apparel"
    assert started.deduplicated is False
    assert again.job_id == started.job_id
    assert again.deduplicated is True

    job = await queue.get_job(HISTORICAL_SYNC_QUEUE, started.job_id)
    assert job.kind == "sync-historical"
    assert job.dedup_key == "historical-brand-1"
    assert job.payload == {"brand_id": "brand-1", "shopify_domain": "acme.myshopify.com"}
    assert "shpat_secret" not in str(job.payload)
