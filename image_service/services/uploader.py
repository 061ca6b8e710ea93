"""
Upload orchestrator for complaint photos.
Processes picked files in throttle-sized batches, uploads them and compensates on failure.
"""

import asyncio
import logging
import os
import re
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional, Sequence, Set

from image_service.core.exceptions import DisposedError, StorageError, StorageErrorKind
from image_service.core.throttle import ThrottleGate
from image_service.models.files import PickedFile
from image_service.models.results import FileOutcome, FileState, ProcessingResult, UploadBatch
from image_service.s3.base import ObjectStorage
from image_service.services.pipeline import ImageProcessingPipeline

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_.-]+")


def sanitize_key_segment(value: str, fallback: str) -> str:
    """
    Make one path segment of an object key safe.

    Runs of characters outside [A-Za-z0-9_.-] become '_'. A segment made
    only of dots (".", "..") would be a relative path part, so it is
    replaced by the fallback, as is an empty one.

    Args:
        value: Raw segment (file name, owner ID)
        fallback: Segment used when nothing usable remains

    Returns:
        Sanitized segment
    """
    cleaned = _UNSAFE_KEY_CHARS.sub("_", value)
    if not cleaned.strip("."):
        return fallback
    return cleaned


def sanitize_file_name(file_name: str) -> str:
    """Make a picked file name safe for use inside an object key."""
    return sanitize_key_segment(file_name, "image")


def build_object_key(prefix: str, owner_id: str, file_name: str) -> str:
    """
    Build the object key for an owner's photo.

    Args:
        prefix: Key prefix from configuration (e.g., "complaints")
        owner_id: Owning record identifier
        file_name: Picked file name

    Returns:
        Object key without leading or trailing slashes
    """
    parts = [
        prefix.strip("/"),
        sanitize_key_segment(owner_id, "unknown"),
        "images",
        sanitize_file_name(file_name),
    ]
    return "/".join(part for part in parts if part)


class UploadOrchestrator:
    """
    Uploads picked files for one owning record.

    Per-file failures (unreadable file, storage error) never fail the call:
    the returned batch simply holds fewer URLs than files submitted.
    """

    def __init__(
        self,
        pipeline: ImageProcessingPipeline,
        throttle: ThrottleGate,
        storage: ObjectStorage,
        bucket: str,
        batch_size: Optional[int] = None,
        batch_delay: float = 0.05,
        key_prefix: str = "complaints",
        logger: Optional[logging.Logger] = None
    ):
        self._pipeline = pipeline
        self._throttle = throttle
        self._storage = storage
        self._bucket = bucket
        self._batch_size = batch_size or throttle.max_concurrent
        self._batch_delay = batch_delay
        self._key_prefix = key_prefix
        self._logger = logger or logging.getLogger(__name__)

    @property
    def bucket(self) -> str:
        return self._bucket

    async def upload(self, files: Sequence[PickedFile], owner_id: str) -> UploadBatch:
        """
        Process and upload files, returning the batch state.

        If the call itself fails (e.g. the service is disposed mid-upload),
        objects it already wrote are deleted before the error propagates.

        Args:
            files: Picked files
            owner_id: Owning record identifier (e.g. complaint ID)

        Returns:
            UploadBatch with URLs in input order for the files that succeeded

        Raises:
            DisposedError: If the throttle is disposed
        """
        batch = UploadBatch(owner_id=owner_id)
        if not files:
            return batch

        self._logger.info(f"[UPLOAD] Starting: {len(files)} file(s) for {owner_id}")
        used_keys: Set[str] = set()

        try:
            for start in range(0, len(files), self._batch_size):
                chunk = files[start:start + self._batch_size]
                outcomes = await self._upload_chunk(chunk, owner_id, batch, used_keys)
                batch.outcomes.extend(outcomes)
                batch.urls.extend(outcome.url for outcome in outcomes if outcome.succeeded)

                if start + self._batch_size < len(files):
                    await asyncio.sleep(self._batch_delay)
        except BaseException:
            await self.rollback(batch)
            raise

        if batch.failed:
            self._logger.warning(
                f"[UPLOAD] Completed with failures: {batch.uploaded}/{batch.submitted} "
                f"uploaded for {owner_id}",
                extra={"owner_id": owner_id, "failed": batch.failed},
            )
        else:
            self._logger.info(f"[UPLOAD] Completed: {batch.uploaded} file(s) for {owner_id}")
        return batch

    async def upload_all(self, files: Sequence[PickedFile], owner_id: str) -> List[str]:
        """Upload files and return only the public URLs."""
        batch = await self.upload(files, owner_id)
        return batch.urls

    async def rollback(self, batch: UploadBatch) -> None:
        """
        Delete every object confirmed written by this batch.

        Failures are logged, not raised: a failed rollback leaves orphaned
        objects behind.

        Args:
            batch: Batch returned by upload()
        """
        if batch.rolled_back or not batch.uploaded_keys:
            batch.rolled_back = True
            return

        keys = list(batch.uploaded_keys)
        self._logger.info(f"[ROLLBACK] Deleting {len(keys)} object(s) for {batch.owner_id}")
        try:
            await self._storage.delete_objects(self._bucket, keys)
            self._logger.info(f"[ROLLBACK] Removed: {keys}")
        except Exception as e:
            self._logger.error(
                f"[ROLLBACK] Failed for {batch.owner_id}, objects left orphaned: {keys} :: {e}",
                extra={"owner_id": batch.owner_id, "orphaned_keys": keys},
            )
        finally:
            batch.uploaded_keys.clear()
            batch.rolled_back = True

    @asynccontextmanager
    async def transaction(
        self,
        files: Sequence[PickedFile],
        owner_id: str
    ) -> AsyncIterator[UploadBatch]:
        """
        Upload files and roll them back if the enclosing block fails.

        Example:
            async with uploader.transaction(files, complaint_id) as batch:
                await complaints.update(complaint_id, image_urls=batch.urls)
        """
        batch = await self.upload(files, owner_id)
        try:
            yield batch
        except (Exception, asyncio.CancelledError):
            await self.rollback(batch)
            raise

    async def _upload_chunk(
        self,
        chunk: Sequence[PickedFile],
        owner_id: str,
        batch: UploadBatch,
        used_keys: Set[str]
    ) -> List[FileOutcome]:
        # Each process() call throttles itself
        results: List[ProcessingResult] = await asyncio.gather(
            *(self._pipeline.process(file) for file in chunk)
        )

        outcomes = []
        uploads = []
        for result in results:
            outcome = FileOutcome(file_name=result.file_name)
            outcomes.append(outcome)

            if not result.ok:
                outcome.state = FileState.PROCESSED_EMPTY
                outcome.error = "processing failed"
                self._logger.warning(f"[UPLOAD] Skipping {result.file_name}: processing failed")
                continue

            outcome.state = FileState.PROCESSED_OK
            outcome.object_key = self._unique_key(owner_id, result.file_name, used_keys)
            uploads.append(self._throttle.run(
                lambda result=result, outcome=outcome: self._upload_one(result, outcome, batch)
            ))

        settled = await asyncio.gather(*uploads, return_exceptions=True)
        for error in settled:
            if isinstance(error, BaseException):
                raise error
        return outcomes

    async def _upload_one(
        self,
        result: ProcessingResult,
        outcome: FileOutcome,
        batch: UploadBatch
    ) -> None:
        key = outcome.object_key
        outcome.state = FileState.UPLOADING
        try:
            await self._storage.put_object(
                self._bucket, key, result.data, result.mime_type, overwrite=False
            )
        except DisposedError:
            raise
        except StorageError as e:
            outcome.state = FileState.UPLOAD_FAILED
            outcome.error = str(e)
            self._logger.error(
                f"[UPLOAD] Storage error for {result.file_name}: {e}{self._hint(e)}",
                extra={"owner_id": batch.owner_id, "object_key": key, "kind": e.kind.value},
            )
            return
        except Exception as e:
            outcome.state = FileState.UPLOAD_FAILED
            outcome.error = str(e)
            self._logger.error(
                f"[UPLOAD] Unexpected error for {result.file_name}: {e}",
                extra={"owner_id": batch.owner_id, "object_key": key},
            )
            return

        batch.uploaded_keys.append(key)
        outcome.url = self._storage.get_public_url(self._bucket, key)
        outcome.state = FileState.UPLOADED_OK
        self._logger.info(f"[UPLOAD] {result.file_name} -> {outcome.url}")

    def _unique_key(self, owner_id: str, file_name: str, used_keys: Set[str]) -> str:
        key = build_object_key(self._key_prefix, owner_id, file_name)
        stem, extension = os.path.splitext(key)
        counter = 2
        while key in used_keys:
            key = f"{stem}_{counter}{extension}"
            counter += 1
        used_keys.add(key)
        return key

    def _hint(self, error: StorageError) -> str:
        if error.kind == StorageErrorKind.UNAUTHORIZED:
            return " (check bucket policies for authenticated uploads)"
        if error.kind == StorageErrorKind.NOT_FOUND:
            return f' (verify bucket "{self._bucket}" exists)'
        if error.kind == StorageErrorKind.CONFLICT:
            return " (an object already exists at this key)"
        return ""
