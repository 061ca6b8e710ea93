"""
Complaint photo endpoints.
Upload picked photos for a complaint and return their public URLs.
"""

import logging
import os
import time
import uuid
from typing import List, Optional

from fastapi import APIRouter, File, HTTPException, UploadFile, status

from shared_schemas.common import SuccessResponse
from shared_schemas.image_service import FileOutcomeResponse, UploadImagesResponse
from image_service.core.dependencies import ImageServiceDep
from image_service.core.exceptions import DisposedError

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/complaints",
    tags=["complaints"]
)


class UploadedFile:
    """
    File source backed by a multipart upload.

    Client file names are not unique (phone pickers send "image.jpg" over
    and over), so each upload gets its own path prefix. The base name stays
    the client's name.
    """

    def __init__(self, upload: UploadFile):
        self._upload = upload
        self._upload_id = uuid.uuid4().hex

    @property
    def path(self) -> str:
        name = os.path.basename(self._upload.filename or "") or "upload"
        return f"uploads/{self._upload_id}/{name}"

    @property
    def length(self) -> int:
        return self._upload.size or 0

    @property
    def mime_type(self) -> Optional[str]:
        return self._upload.content_type

    async def read_bytes(self) -> bytes:
        await self._upload.seek(0)
        return await self._upload.read()


@router.post("/{complaint_id}/images", response_model=SuccessResponse[UploadImagesResponse])
async def upload_complaint_images(
    complaint_id: str,
    service: ImageServiceDep,
    files: List[UploadFile] = File(...)
):
    """
    Upload photos for a complaint.

    Files that cannot be read or stored are skipped; the response reports
    how many failed as a warning rather than an error.

    Examples:
        curl -X POST "http://server/complaints/c-123/images" \\
          -F "files=@pothole.jpg" -F "files=@drain.png"

    Args:
        complaint_id: Owning complaint ID (from URL path)
        files: Multipart photo files

    Returns:
        Upload result with URLs and per-file outcomes
    """
    start_time = time.time()
    picked = [UploadedFile(upload) for upload in files]

    try:
        batch = await service.upload(picked, complaint_id)
    except DisposedError as e:
        logger.error(f"[COMPLAINT UPLOAD] Service disposed during upload for {complaint_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Image service is shutting down"
        )

    duration = time.time() - start_time
    logger.info(
        f"[COMPLAINT UPLOAD] {complaint_id}: {batch.uploaded}/{batch.submitted} "
        f"uploaded in {duration:.2f}s"
    )

    warnings = []
    if batch.failed:
        noun = "image" if batch.failed == 1 else "images"
        warnings.append(f"{batch.failed} {noun} failed to upload")

    return SuccessResponse(
        success=True,
        message=f"{batch.uploaded} of {batch.submitted} images uploaded",
        warnings=warnings,
        data=UploadImagesResponse(
            complaint_id=complaint_id,
            bucket=service.uploader.bucket,
            urls=batch.urls,
            submitted=batch.submitted,
            uploaded=batch.uploaded,
            failed=batch.failed,
            files=[FileOutcomeResponse(**outcome.to_dict()) for outcome in batch.outcomes],
        )
    )
