"""
Exception types for the image service.

Per-file processing failures are not exceptions: they are returned inline as
empty ProcessingResult records. Only disposal, configuration mistakes and
storage collaborator failures are raised.
"""

from enum import Enum
from typing import Optional


class ImageServiceError(Exception):
    """Base class for all image service errors."""


class DisposedError(ImageServiceError):
    """Raised when an operation is attempted after dispose()."""

    def __init__(self, component: str = "ImageService"):
        super().__init__(f"{component} has been disposed")
        self.component = component


class ConfigurationError(ImageServiceError, ValueError):
    """Invalid construction parameters (budgets, concurrency limits)."""


class StorageErrorKind(str, Enum):
    """Status classification for object storage failures."""
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    UNKNOWN = "unknown"


class StorageError(ImageServiceError):
    """Failure reported by the object storage collaborator."""

    def __init__(
        self,
        kind: StorageErrorKind,
        message: str,
        status_code: Optional[int] = None
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status_code = status_code

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"[{self.kind.value} {self.status_code}] {self.message}"
        return f"[{self.kind.value}] {self.message}"
