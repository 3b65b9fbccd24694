"""
Trigger run ledger.

A scheduled fire first claims ``(trigger_name, tick_at)``. The unique
constraint lets exactly one claim per tick succeed, so a scheduler restarted
inside the misfire window does not run the same tick twice.
"""

from collections.abc import Callable
from datetime import datetime

from sqlalchemy import TIMESTAMP, Boolean, Integer, Text, UniqueConstraint, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import Mapped, mapped_column

from jobflow.config.logging import get_logger
from jobflow.infra.database import Base
from jobflow.v1.infra.jobs.models import utcnow

logger = get_logger(__name__)


class TriggerRun(Base):
    __tablename__ = "trigger_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    trigger_name: Mapped[str] = mapped_column(Text, nullable=False)
    tick_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, comment="Scheduled fire time in UTC"
    )
    started_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow
    )
    finished_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )
    succeeded: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("trigger_name", "tick_at", name="uq_trigger_runs_name_tick"),
    )


class TriggerLedger:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Callable[[], datetime] = utcnow,
    ):
        self._sessions = session_factory
        self._clock = clock

    async def claim(self, trigger_name: str, tick_at: datetime) -> int | None:
        """Record the start of a tick. Returns the run id, or None if already claimed."""
        async with self._sessions() as session:
            run = TriggerRun(
                trigger_name=trigger_name, tick_at=tick_at, started_at=self._clock()
            )
            session.add(run)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                logger.info(
                    "Trigger tick already claimed",
                    trigger=trigger_name,
                    tick_at=tick_at.isoformat(),
                )
                return None
            return run.id

    async def finish(self, run_id: int, succeeded: bool, error: str | None = None) -> None:
        async with self._sessions() as session:
            run = await session.get(TriggerRun, run_id)
            if run is None:
                return
            run.finished_at = self._clock()
            run.succeeded = succeeded
            run.error = error[:2000] if error else None
            await session.commit()

    async def recent(self, trigger_name: str, limit: int = 10) -> list[TriggerRun]:
        async with self._sessions() as session:
            result = await session.execute(
                select(TriggerRun)
                .where(TriggerRun.trigger_name == trigger_name)
                .order_by(TriggerRun.tick_at.desc())
                .limit(limit)
            )
            return list(result.scalars().all())
