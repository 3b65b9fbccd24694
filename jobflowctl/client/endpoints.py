"""API Endpoint Wrappers"""

from typing import Any
from urllib.parse import quote

from ..utils.config_manager import config
from .base import APIClient, JobflowError

__all__ = ["JobflowClient", "JobflowError"]


class JobflowClient:
    """High-level client with one method per admin endpoint"""

    def __init__(self, base_url: str | None = None, headers: dict[str, str] | None = None):
        api_config = config.load_config().get("api", {})
        self.api = APIClient(
            base_url=base_url or api_config.get("base_url", "http://localhost:8000"),
            timeout=api_config.get("timeout", 30),
            headers=headers or api_config.get("headers", {}),
        )

    def __enter__(self):
        self.api.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.api.__exit__(exc_type, exc_val, exc_tb)

    # Health
    def health_check(self) -> dict[str, Any]:
        return self.api.get("/healthz")

    # Queues and jobs
    def queue_counts(self, queue_name: str | None = None) -> dict[str, Any]:
        if queue_name:
            return self.api.get(f"/queues/counts/{quote(queue_name, safe='')}")
        return self.api.get("/queues/counts")

    def job_status(self, queue_name: str, job_id: str) -> dict[str, Any]:
        return self.api.get(f"/jobs/{quote(queue_name, safe='')}/{quote(job_id, safe='')}")

    # Cache
    def cache_stats(self, cache_name: str | None = None) -> dict[str, Any]:
        if cache_name:
            return self.api.get(f"/cache/stats/{quote(cache_name, safe='')}")
        return self.api.get("/cache/stats")

    def clear_cache(self, cache_name: str | None = None) -> dict[str, Any]:
        if cache_name:
            return self.api.delete(f"/cache/clear/{quote(cache_name, safe='')}")
        return self.api.delete("/cache/clear")

    def delete_cache_key(self, cache_name: str, key: str) -> dict[str, Any]:
        return self.api.delete(
            f"/cache/clear/{quote(cache_name, safe='')}/key/{quote(key, safe='')}"
        )

    # Sync
    def start_historical_sync(self, brand_id: str) -> dict[str, Any]:
        return self.api.post(f"/sync/{quote(brand_id, safe='')}/historical")

    def sync_status(self, job_id: str) -> dict[str, Any]:
        return self.api.get(f"/sync/status/{quote(job_id, safe='')}")

    # Scheduler
    def list_triggers(self) -> dict[str, Any]:
        return self.api.get("/scheduler/triggers")

    def fire_trigger(self, name: str) -> dict[str, Any]:
        return self.api.post(f"/scheduler/triggers/{quote(name, safe='')}/fire")
