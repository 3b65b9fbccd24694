"""
Job queue Pydantic schemas.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from jobflow.config.settings import BackoffType


class Backoff(BaseModel):
    """Delay rule applied before a failed job is attempted again."""

    type: BackoffType = Field(default=BackoffType.EXPONENTIAL)
    delay_ms: int = Field(default=2000, gt=0, description="Base delay in milliseconds")


class RetryPolicy(BaseModel):
    max_attempts: int = Field(default=3, ge=1)
    backoff: Backoff = Field(default_factory=Backoff)


class SubmitOptions(BaseModel):
    """Per-submission overrides of the queue defaults."""

    dedup_key: str | None = Field(default=None, description="Deduplication key")
    priority: int | None = Field(
        default=None, ge=1, le=10, description="Priority (1=first, 10=last)"
    )
    retry_policy: RetryPolicy | None = None
    delay_ms: int | None = Field(
        default=None, ge=0, description="Hold the job back before its first attempt"
    )


class JobHandle(BaseModel):
    """What a producer gets back from a submission."""

    job_id: UUID
    queue_name: str
    kind: str
    state: str
    deduplicated: bool = Field(
        default=False, description="True when an existing job was returned"
    )


class JobResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    queue_name: str
    kind: str
    payload: dict[str, Any]
    dedup_key: str | None = None
    priority: int
    state: str
    attempts: int
    max_attempts: int
    backoff_type: str
    backoff_delay_ms: int
    run_at: datetime
    progress: Any | None = None
    result: Any | None = None
    error_code: str | None = None
    last_error: str | None = None
    processed_on: datetime | None = None
    finished_on: datetime | None = None
    created_at: datetime
    updated_at: datetime


class JobStatusResponse(BaseModel):
    """Lifecycle view returned by the status service."""

    job_id: UUID
    queue_name: str
    kind: str
    state: str
    progress: Any | None = None
    result: Any | None = None
    error: str | None = None
    error_code: str | None = None
    attempts: int
    max_attempts: int
    processed_on: datetime | None = None
    finished_on: datetime | None = None


class QueueCounts(BaseModel):
    queue_name: str
    waiting: int = 0
    active: int = 0
    completed: int = 0
    failed: int = 0
    delayed: int = Field(default=0, description="Waiting jobs whose run_at is in the future")

    @property
    def total(self) -> int:
        return self.waiting + self.active + self.completed + self.failed

    def as_dict(self) -> dict[str, Any]:
        return {**self.model_dump(), "total": self.total}
