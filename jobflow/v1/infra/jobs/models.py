"""
Job queue models.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    TIMESTAMP,
    CheckConstraint,
    Index,
    Integer,
    SmallInteger,
    Text,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from jobflow.infra.database import Base


class JobState(str, Enum):
    """Job lifecycle state."""

    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


NON_TERMINAL_STATES = (JobState.WAITING.value, JobState.ACTIVE.value)
TERMINAL_STATES = (JobState.COMPLETED.value, JobState.FAILED.value)

_ACTIVE_DEDUP_WHERE = text(
    "dedup_key IS NOT NULL AND state IN ('waiting', 'active')"
)


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive timestamps read back from stores that drop tzinfo."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


class Job(Base):
    """
    One deferred unit of work in a named queue.

    Producers only insert rows; workers move them through
    waiting -> active -> completed | failed.
    """

    __tablename__ = "jobs"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    queue_name: Mapped[str] = mapped_column(Text, nullable=False, comment="Logical queue")
    kind: Mapped[str] = mapped_column(
        Text, nullable=False, comment="Job semantics within the queue"
    )
    payload: Mapped[dict[str, Any]] = mapped_column(
        JSON, nullable=False, default=dict, comment="Kind-specific data"
    )
    dedup_key: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="At most one non-terminal job per (queue, key)"
    )
    priority: Mapped[int] = mapped_column(
        SmallInteger,
        nullable=False,
        default=5,
        comment="Priority 1-10, lower is picked first",
    )

    # Lifecycle
    state: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default=JobState.WAITING.value,
        comment="waiting|active|completed|failed",
    )
    attempts: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, comment="Attempts started so far"
    )
    max_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    backoff_type: Mapped[str] = mapped_column(Text, nullable=False, default="exponential")
    backoff_delay_ms: Mapped[int] = mapped_column(Integer, nullable=False, default=2000)
    run_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=utcnow,
        comment="Earliest time the job may be claimed",
    )

    # Worker coordination
    locked_by: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Results and progress
    progress: Mapped[Any | None] = mapped_column(
        JSON, nullable=True, comment="Last progress reported by the worker"
    )
    result: Mapped[Any | None] = mapped_column(JSON, nullable=True)
    error_code: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Timestamps
    processed_on: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True, comment="Last time a worker claimed it"
    )
    finished_on: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True, comment="Terminal transition time"
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        CheckConstraint(
            "state IN ('waiting', 'active', 'completed', 'failed')",
            name="jobs_state_check",
        ),
        CheckConstraint("priority BETWEEN 1 AND 10", name="jobs_priority_check"),
        Index("ix_jobs_queue_state_run_at", "queue_name", "state", "run_at"),
        Index("ix_jobs_created_at", "created_at"),
        Index(
            "ix_jobs_dedup_key_active",
            "queue_name",
            "dedup_key",
            unique=True,
            postgresql_where=_ACTIVE_DEDUP_WHERE,
            sqlite_where=_ACTIVE_DEDUP_WHERE,
        ),
    )

    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def has_attempts_left(self) -> bool:
        return self.attempts < self.max_attempts
