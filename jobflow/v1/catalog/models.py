"""
Read-side shapes of records owned by the external document store.
"""

from datetime import datetime

from sqlalchemy import TIMESTAMP, Boolean, Float, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from jobflow.infra.database import Base
from jobflow.v1.infra.jobs.models import utcnow


class Brand(Base):
    __tablename__ = "brands"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    shopify_domain: Mapped[str | None] = mapped_column(Text, nullable=True)
    shopify_access_token: Mapped[str | None] = mapped_column(Text, nullable=True)

    def has_store_credentials(self) -> bool:
        return bool(self.shopify_access_token)


class Order(Base):
    """Order location fields needed for city classification."""

    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    brand_id: Mapped[str] = mapped_column(String(64), nullable=False)
    city: Mapped[str | None] = mapped_column(Text, nullable=True)
    state: Mapped[str | None] = mapped_column(Text, nullable=True)
    order_created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False
    )

    __table_args__ = (Index("ix_orders_order_created_at", "order_created_at"),)


class CityMetadata(Base):
    """Classification result for one normalized city/state pair."""

    __tablename__ = "city_metadata"

    lookup_key: Mapped[str] = mapped_column(String(255), primary_key=True)
    city: Mapped[str] = mapped_column(Text, nullable=False)
    state: Mapped[str] = mapped_column(Text, nullable=False)
    city_normalized: Mapped[str] = mapped_column(Text, nullable=False)

    # Classifications
    metro_status: Mapped[str | None] = mapped_column(Text, nullable=True, comment="metro|non-metro")
    tier: Mapped[str | None] = mapped_column(Text, nullable=True, comment="tier1|tier2|tier3")
    region: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="north|south|east|west|central|other"
    )
    is_coastal: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Metadata
    source: Mapped[str] = mapped_column(Text, nullable=False, default="gpt", comment="gpt|manual")
    confidence: Mapped[float] = mapped_column(Float, nullable=False, default=0.9)
    processing_status: Mapped[str] = mapped_column(
        Text, nullable=False, default="pending", comment="pending|processing|completed|failed"
    )
    processed_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    last_verified_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        Index("ix_city_metadata_city_state", "city_normalized", "state"),
        Index("ix_city_metadata_processing_status", "processing_status"),
    )
