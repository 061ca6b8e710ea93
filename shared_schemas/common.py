"""
Common response envelopes shared by all endpoints.
"""

from typing import Generic, List, TypeVar
from pydantic import BaseModel, Field


T = TypeVar('T')


class SuccessResponse(BaseModel, Generic[T]):
    """
    Generic success response wrapper.

    Partial successes are still successes; what went wrong is reported as
    soft warnings the client can surface without blocking the user.

    Example:
        SuccessResponse[UploadImagesResponse](
            success=True,
            message="2 of 3 images uploaded",
            warnings=["1 image failed to upload"],
            data=UploadImagesResponse(...)
        )
    """
    success: bool
    message: str | None = None
    warnings: List[str] = Field(default_factory=list)
    data: T


class ErrorResponse(BaseModel):
    """Hard failure that blocks the enclosing user action."""
    success: bool = False
    detail: str
    error_code: str | None = None
