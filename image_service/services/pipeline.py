"""
Image processing pipeline.
Turns a picked file into (bytes, MIME type, file name), skipping repeat work via the cache.
"""

import asyncio
import logging
from concurrent.futures import Executor
from typing import Optional, Tuple

from image_service.core.cache import ByteCacheStore, make_cache_key
from image_service.core.throttle import ThrottleGate
from image_service.models.files import PickedFile, file_name_of
from image_service.models.results import ProcessingResult
from image_service.utils.content_type import detect_content_type


def decode_and_sniff(
    raw: bytes,
    file_name: str,
    provided_type: Optional[str] = None
) -> Tuple[bytes, str]:
    """
    Normalize raw file bytes and detect their MIME type.

    Module-level so it can be shipped to any executor, including process pools.

    Args:
        raw: Bytes read from the file source
        file_name: Base name of the file
        provided_type: MIME type hint from the picker

    Returns:
        Tuple of (bytes, mime_type)
    """
    data = bytes(raw)
    return data, detect_content_type(file_name, data, provided_type)


class ImageProcessingPipeline:
    """
    Throttled, cache-aware reader for picked files.

    On platforms with background workers the decode and sniff step runs on
    the given executor; otherwise it runs inline. Results are identical.
    """

    def __init__(
        self,
        cache: ByteCacheStore,
        throttle: ThrottleGate,
        supports_background_workers: bool = False,
        executor: Optional[Executor] = None,
        logger: Optional[logging.Logger] = None
    ):
        self._cache = cache
        self._throttle = throttle
        self._supports_background_workers = supports_background_workers
        self._executor = executor
        self._logger = logger or logging.getLogger(__name__)

    @property
    def uses_background_workers(self) -> bool:
        return self._supports_background_workers

    async def process(self, file: PickedFile) -> ProcessingResult:
        """
        Process one picked file through the throttle.

        Never raises for read or sniff failures: those produce an empty
        result so batch callers can continue with the remaining files.

        Args:
            file: Picked file handle

        Returns:
            ProcessingResult (empty data on failure)

        Raises:
            DisposedError: If the throttle was disposed
        """
        return await self._throttle.run(lambda: self._process_inner(file))

    async def _process_inner(self, file: PickedFile) -> ProcessingResult:
        file_name = file_name_of(file)
        cache_key = make_cache_key(file.path, file.length)

        cached = self._cache.get(cache_key)
        if cached is not None:
            self._logger.debug(f"[PIPELINE] Cache hit: {file_name}")
            return ProcessingResult(data=cached.data, mime_type=cached.mime_type, file_name=file_name)

        try:
            raw = await file.read_bytes()
            if self._supports_background_workers:
                loop = asyncio.get_event_loop()
                data, mime_type = await loop.run_in_executor(
                    self._executor, decode_and_sniff, raw, file_name, file.mime_type
                )
            else:
                data, mime_type = decode_and_sniff(raw, file_name, file.mime_type)
        except Exception as e:
            self._logger.warning(
                f"[PIPELINE] Failed to process {file_name}: {e}",
                extra={"file_name": file_name, "file_path": file.path},
            )
            return ProcessingResult.empty(file_name)

        if not data:
            self._logger.warning(
                f"[PIPELINE] {file_name} is empty",
                extra={"file_name": file_name, "file_path": file.path},
            )
            return ProcessingResult.empty(file_name)

        if not self._cache.put(cache_key, data, mime_type):
            self._logger.info(f"[PIPELINE] {file_name} ({len(data)} bytes) too large to cache")

        self._logger.debug(f"[PIPELINE] Processed {file_name}: {mime_type}, {len(data)} bytes")
        return ProcessingResult(data=data, mime_type=mime_type, file_name=file_name)
