"""
Processing and upload result models.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from image_service.utils.content_type import DEFAULT_CONTENT_TYPE


class FileState(str, Enum):
    """Lifecycle of one file within an upload call."""
    PICKED = "picked"
    PROCESSING = "processing"
    PROCESSED_OK = "processed_ok"
    PROCESSED_EMPTY = "processed_empty"
    UPLOADING = "uploading"
    UPLOADED_OK = "uploaded_ok"
    UPLOAD_FAILED = "upload_failed"


@dataclass(frozen=True)
class ProcessingResult:
    """Normalized bytes of a picked file. Empty data marks a failed file."""
    data: bytes = field(repr=False)
    mime_type: str
    file_name: str

    @classmethod
    def empty(cls, file_name: str) -> "ProcessingResult":
        """Placeholder for a file that could not be read or sniffed."""
        return cls(data=b"", mime_type=DEFAULT_CONTENT_TYPE, file_name=file_name)

    @property
    def ok(self) -> bool:
        return len(self.data) > 0

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class FileOutcome:
    """Final state of one file after an upload call."""
    file_name: str
    state: FileState = FileState.PICKED
    object_key: Optional[str] = None
    url: Optional[str] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.state == FileState.UPLOADED_OK

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        return {
            "file_name": self.file_name,
            "state": self.state.value,
            "object_key": self.object_key,
            "url": self.url,
            "error": self.error,
        }


@dataclass
class UploadBatch:
    """
    State of one upload call.

    uploaded_keys only ever holds keys whose upload was confirmed by storage;
    it is emptied once the batch has been rolled back.
    """
    owner_id: str
    urls: List[str] = field(default_factory=list)
    uploaded_keys: List[str] = field(default_factory=list)
    outcomes: List[FileOutcome] = field(default_factory=list)
    rolled_back: bool = False

    @property
    def submitted(self) -> int:
        return len(self.outcomes)

    @property
    def uploaded(self) -> int:
        return len(self.urls)

    @property
    def failed(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.succeeded)

    @property
    def partial(self) -> bool:
        """True when some, but not all, submitted files were uploaded."""
        return 0 < self.failed < self.submitted
