"""
Named cache registry: one addressing layer over independently managed caches.
"""

from typing import Any, Protocol

from pydantic import BaseModel

from jobflow.config.logging import get_logger
from jobflow.config.settings import CacheDefinition
from jobflow.v1.core.exceptions import NotFoundError
from jobflow.v1.core.registries import Registry
from jobflow.v1.infra.cache.ttl_cache import StatsTTLCache

logger = get_logger(__name__)


class CacheHandle(Protocol):
    """Operations every registered cache exposes."""

    def get_stats(self) -> dict[str, Any]: ...

    def flush_all(self) -> None: ...

    def delete(self, key: str) -> bool: ...


class FlushOutcome(BaseModel):
    success: bool
    message: str


class CacheRegistry(Registry[CacheHandle]):
    """
    Process-wide registry of named caches.

    Registration happens once at startup; re-registering a name replaces the
    previous cache. The registry is not itself a cache.
    """

    def __init__(self):
        super().__init__("Cache")

    def cache(self, name: str) -> CacheHandle:
        try:
            return self.get(name)
        except KeyError:
            raise NotFoundError(
                f"Cache '{name}' not found", details={"cache_name": name}
            ) from None

    def stats(self, name: str | None = None) -> dict[str, dict[str, Any]]:
        """Stats for one cache, or all caches when ``name`` is omitted."""
        if name is not None:
            return {name: self.cache(name).get_stats()}
        return {cache_name: cache.get_stats() for cache_name, cache in self.items()}

    def flush(self, name: str | None = None) -> dict[str, FlushOutcome]:
        """
        Clear one cache, or every cache when ``name`` is omitted.

        A failing cache is reported in the outcome map and does not stop the
        others from being flushed.
        """
        targets = [(name, self.cache(name))] if name is not None else self.items()

        outcomes: dict[str, FlushOutcome] = {}
        for cache_name, cache in targets:
            try:
                cache.flush_all()
            except Exception as e:
                logger.exception("Cache flush failed", cache_name=cache_name)
                outcomes[cache_name] = FlushOutcome(success=False, message=str(e))
            else:
                outcomes[cache_name] = FlushOutcome(
                    success=True, message="Cache cleared successfully"
                )
        return outcomes

    def delete_key(self, name: str, key: str) -> bool:
        """Remove one key. Unknown cache is an error, an absent key is not."""
        return self.cache(name).delete(key)


def build_cache_registry(definitions: dict[str, CacheDefinition]) -> CacheRegistry:
    registry = CacheRegistry()
    for name, definition in definitions.items():
        registry.register(
            name, StatsTTLCache(ttl_s=definition.ttl_s, max_size=definition.max_size)
        )
    logger.info("Cache registry initialized", caches=registry.list())
    return registry
