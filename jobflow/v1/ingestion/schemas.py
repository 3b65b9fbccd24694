from uuid import UUID

from pydantic import BaseModel


class WebhookAccepted(BaseModel):
    job_id: UUID
    queue_name: str
    deduplicated: bool


class HistoricalSyncStarted(BaseModel):
    job_id: UUID
    brand: str
    deduplicated: bool
