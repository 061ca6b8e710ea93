"""
Image service facade.
Owns the cache, throttle, pipeline and orchestrator, and their shared lifecycle.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Optional, Sequence

from image_service.core.cache import ByteCacheStore
from image_service.core.config import Settings, platform_supports_background_workers
from image_service.core.exceptions import DisposedError
from image_service.core.throttle import ThrottleGate
from image_service.models.files import PickedFile
from image_service.models.results import ProcessingResult, UploadBatch
from image_service.s3.base import ObjectStorage
from image_service.services.pipeline import ImageProcessingPipeline
from image_service.services.uploader import UploadOrchestrator

logger = logging.getLogger(__name__)


class ImageService:
    """
    Entry point used by the application for complaint photos.

    Constructed once by the composition root; tests build fresh instances.
    After dispose() every public operation raises DisposedError.
    """

    def __init__(
        self,
        storage: ObjectStorage,
        bucket: str,
        cache: Optional[ByteCacheStore] = None,
        throttle: Optional[ThrottleGate] = None,
        supports_background_workers: bool = False,
        background_workers: int = 2,
        batch_delay: float = 0.05,
        key_prefix: str = "complaints"
    ):
        self.cache = cache if cache is not None else ByteCacheStore()
        self.throttle = throttle if throttle is not None else ThrottleGate()
        self._disposed = False

        self._executor: Optional[ThreadPoolExecutor] = None
        if supports_background_workers:
            self._executor = ThreadPoolExecutor(
                max_workers=background_workers,
                thread_name_prefix="image-decode"
            )

        self.pipeline = ImageProcessingPipeline(
            cache=self.cache,
            throttle=self.throttle,
            supports_background_workers=supports_background_workers,
            executor=self._executor,
        )
        self.uploader = UploadOrchestrator(
            pipeline=self.pipeline,
            throttle=self.throttle,
            storage=storage,
            bucket=bucket,
            batch_delay=batch_delay,
            key_prefix=key_prefix,
        )

        logger.info(
            f"Image service ready (bucket={bucket}, max_concurrent={self.throttle.max_concurrent}, "
            f"background_workers={supports_background_workers})"
        )

    @classmethod
    def from_settings(cls, settings: Settings, storage: ObjectStorage) -> "ImageService":
        """Build the service from application settings."""
        return cls(
            storage=storage,
            bucket=settings.IMAGE_BUCKET,
            cache=ByteCacheStore(
                max_items=settings.CACHE_MAX_ITEMS,
                max_bytes=settings.CACHE_MAX_BYTES
            ),
            throttle=ThrottleGate(max_concurrent=settings.MAX_CONCURRENT_OPERATIONS),
            supports_background_workers=(
                settings.ENABLE_BACKGROUND_PROCESSING and platform_supports_background_workers()
            ),
            background_workers=settings.BACKGROUND_WORKERS,
            batch_delay=settings.BATCH_DELAY_MS / 1000,
            key_prefix=settings.OBJECT_KEY_PREFIX,
        )

    @property
    def disposed(self) -> bool:
        return self._disposed

    async def process(self, file: PickedFile) -> ProcessingResult:
        """Process a single picked file (cache-aware, throttled)."""
        self._check_disposed()
        return await self.pipeline.process(file)

    async def upload(self, files: Sequence[PickedFile], owner_id: str) -> UploadBatch:
        """Upload files for an owner, keeping the batch for a later rollback."""
        self._check_disposed()
        return await self.uploader.upload(files, owner_id)

    async def upload_all(self, files: Sequence[PickedFile], owner_id: str) -> List[str]:
        """Upload files for an owner and return the public URLs."""
        self._check_disposed()
        return await self.uploader.upload_all(files, owner_id)

    async def rollback(self, batch: UploadBatch) -> None:
        """Delete the objects written by a batch whose transaction failed."""
        self._check_disposed()
        await self.uploader.rollback(batch)

    @asynccontextmanager
    async def transaction(
        self,
        files: Sequence[PickedFile],
        owner_id: str
    ) -> AsyncIterator[UploadBatch]:
        """Upload files, rolling them back if the enclosing block raises."""
        self._check_disposed()
        async with self.uploader.transaction(files, owner_id) as batch:
            yield batch

    def handle_memory_pressure(self) -> int:
        """
        Release part of the cache in response to a low-memory signal.

        Returns:
            Number of cache entries evicted
        """
        self._check_disposed()
        logger.warning("Handling memory pressure - trimming image cache")
        return self.cache.clear_half()

    def clear_cache(self) -> None:
        """Drop every cached image."""
        self._check_disposed()
        self.cache.clear()

    def cache_stats(self) -> Dict[str, int]:
        """Return cache counters plus throttle occupancy."""
        self._check_disposed()
        stats = self.cache.stats()
        stats["active_operations"] = self.throttle.active
        stats["queued_operations"] = self.throttle.queued
        return stats

    def dispose(self) -> None:
        """Fail queued work, clear the cache and stop background workers. Idempotent."""
        if self._disposed:
            return
        self._disposed = True

        self.throttle.dispose()
        self.cache.clear()
        if self._executor is not None:
            self._executor.shutdown(wait=False)
        logger.info("Image service disposed")

    def _check_disposed(self) -> None:
        if self._disposed:
            raise DisposedError("ImageService")
