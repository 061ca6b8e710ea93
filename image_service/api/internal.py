"""
Internal cache endpoints.
Monitoring and memory-pressure relief for the decoded-image cache.
"""

import logging

from fastapi import APIRouter

from shared_schemas.image_service import CacheStatsResponse, CacheTrimResponse
from image_service.core.dependencies import ImageServiceDep

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/internal/cache",
    tags=["internal"]
)


@router.get("", response_model=CacheStatsResponse)
async def get_cache_stats(service: ImageServiceDep):
    """Return cache counters and throttle occupancy."""
    return CacheStatsResponse(**service.cache_stats())


@router.post("/trim", response_model=CacheTrimResponse)
async def trim_cache(service: ImageServiceDep):
    """
    Relieve memory pressure by evicting the older half of the cache.

    Called by the host when it detects low memory; cheaper than a full
    clear because recently used photos stay cached.
    """
    evicted = service.handle_memory_pressure()
    return CacheTrimResponse(evicted=evicted, remaining=service.cache.item_count)


@router.delete("", response_model=CacheTrimResponse)
async def clear_cache(service: ImageServiceDep):
    """Drop every cached image."""
    evicted = service.cache.item_count
    service.clear_cache()
    logger.info(f"[CACHE] Cleared {evicted} entries")
    return CacheTrimResponse(evicted=evicted, remaining=0)
