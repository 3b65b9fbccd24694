"""
Cache admin endpoints: stats, flush, single-key eviction.
"""

from typing import Any

from fastapi import APIRouter, Request

from jobflow.config.logging import get_logger
from jobflow.v1.core.container import CacheRegistryDep
from jobflow.v1.core.exceptions import create_success_response
from jobflow.v1.infra.cache.registry import CacheRegistry

logger = get_logger(__name__)
router = APIRouter(prefix="/cache", tags=["cache"])


@router.get("/stats", response_model=dict)
async def get_all_cache_stats(
    request: Request, caches: CacheRegistry = CacheRegistryDep
) -> dict[str, Any]:
    return create_success_response(
        data=caches.stats(),
        message="Cache stats retrieved successfully",
        request_id=request.state.request_id,
    )


@router.get("/stats/{cache_name}", response_model=dict)
async def get_cache_stats(
    cache_name: str, request: Request, caches: CacheRegistry = CacheRegistryDep
) -> dict[str, Any]:
    return create_success_response(
        data=caches.stats(cache_name),
        message="Cache stats retrieved successfully",
        request_id=request.state.request_id,
    )


@router.delete("/clear", response_model=dict)
async def clear_all_caches(
    request: Request, caches: CacheRegistry = CacheRegistryDep
) -> dict[str, Any]:
    """Flush every registered cache; each cache reports its own outcome."""
    outcomes = caches.flush()
    logger.info(
        "All caches cleared",
        caches=list(outcomes),
        failed=[name for name, o in outcomes.items() if not o.success],
    )
    return create_success_response(
        data={name: o.model_dump() for name, o in outcomes.items()},
        message="All caches cleared",
        request_id=request.state.request_id,
    )


@router.delete("/clear/{cache_name}", response_model=dict)
async def clear_cache(
    cache_name: str, request: Request, caches: CacheRegistry = CacheRegistryDep
) -> dict[str, Any]:
    outcomes = caches.flush(cache_name)
    logger.info("Cache cleared", cache_name=cache_name, success=outcomes[cache_name].success)
    return create_success_response(
        data={name: o.model_dump() for name, o in outcomes.items()},
        message=f"Cache '{cache_name}' cleared",
        request_id=request.state.request_id,
    )


@router.delete("/clear/{cache_name}/key/{key:path}", response_model=dict)
async def delete_cache_key(
    cache_name: str,
    key: str,
    request: Request,
    caches: CacheRegistry = CacheRegistryDep,
) -> dict[str, Any]:
    deleted = caches.delete_key(cache_name, key)
    return create_success_response(
        data={"cache_name": cache_name, "key": key, "deleted": deleted},
        message="Key deleted" if deleted else "Key not found in cache",
        request_id=request.state.request_id,
    )
