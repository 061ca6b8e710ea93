"""
Shared dependencies for FastAPI endpoints.
"""

import logging
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from image_service.services.image_service import ImageService

logger = logging.getLogger(__name__)


async def get_image_service(request: Request) -> ImageService:
    """
    Get the image service built by the application lifespan.
    Raises 503 if the service is missing or already disposed.
    """
    service: ImageService | None = getattr(request.app.state, "image_service", None)
    if service is None or service.disposed:
        logger.warning("Image service requested but not available")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Image service is not available"
        )
    return service


# Dependency annotations
ImageServiceDep = Annotated[ImageService, Depends(get_image_service)]
