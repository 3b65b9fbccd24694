"""
Dedup key derivation for ingested events.

Two deliveries of the same logical event must produce byte-identical keys,
so ids are rendered with ``str()`` and nothing else.
"""

import time
from datetime import date
from typing import Any


def order_created_key(order_id: Any) -> str:
    """One live job per order id; webhook redeliveries collapse onto it."""
    return f"order-{order_id}"


def refund_created_key(order_id: Any, nonce: str) -> str:
    """
    Each refund submission gets its own job, even for the same order.

    The nonce is a submission timestamp, so a provider redelivering the same
    refund also yields a second job.
    """
    return f"refund-{order_id}-{nonce}"


def historical_sync_key(entity_id: Any) -> str:
    """One in-flight historical sync per entity."""
    return f"historical-{entity_id}"


def millisecond_nonce() -> str:
    return str(int(time.time() * 1000))


def revenue_recalculation_key(brand_id: Any, day: date) -> str:
    """One recalculation per brand and calendar day."""
    return f"revenue-cron-{brand_id}-{day.isoformat()}"
