from datetime import datetime

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from jobflow.v1.catalog.models import Brand, CityMetadata, Order


class BrandRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._sessions = session_factory

    async def get(self, brand_id: str) -> Brand | None:
        async with self._sessions() as session:
            return await session.get(Brand, brand_id)

    async def with_store_credentials(self) -> list[Brand]:
        """Brands with both a store domain and an access token, ordered by id."""
        async with self._sessions() as session:
            result = await session.execute(
                select(Brand)
                .where(
                    and_(
                        Brand.shopify_access_token.is_not(None),
                        Brand.shopify_access_token != "",
                        Brand.shopify_domain.is_not(None),
                        Brand.shopify_domain != "",
                    )
                )
                .order_by(Brand.id)
            )
            return list(result.scalars().all())


class OrderLocationRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._sessions = session_factory

    async def locations_between(
        self, start: datetime, end: datetime
    ) -> list[tuple[str, str]]:
        """(city, state) of every order created in ``[start, end)``, oldest first."""
        async with self._sessions() as session:
            result = await session.execute(
                select(Order.city, Order.state)
                .where(
                    and_(
                        Order.order_created_at >= start,
                        Order.order_created_at < end,
                        Order.city.is_not(None),
                        Order.state.is_not(None),
                    )
                )
                .order_by(Order.order_created_at, Order.id)
            )
            return [(city, state) for city, state in result.all()]


class CityMetadataRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._sessions = session_factory

    async def existing_lookup_keys(self, lookup_keys: list[str]) -> set[str]:
        if not lookup_keys:
            return set()
        async with self._sessions() as session:
            result = await session.execute(
                select(CityMetadata.lookup_key).where(
                    CityMetadata.lookup_key.in_(lookup_keys)
                )
            )
            return set(result.scalars().all())
