"""
Complaint Image Service API schemas.
Type-safe contracts for upload and cache endpoints.
"""

from enum import Enum
from typing import Optional
from pydantic import BaseModel


class FileState(str, Enum):
    """Final state of an uploaded file."""
    PROCESSED_EMPTY = "processed_empty"
    UPLOADED_OK = "uploaded_ok"
    UPLOAD_FAILED = "upload_failed"


# ============================================================================
# Upload Endpoints
# ============================================================================

class FileOutcomeResponse(BaseModel):
    """Per-file upload result."""
    file_name: str
    state: FileState
    object_key: Optional[str] = None
    url: Optional[str] = None
    error: Optional[str] = None


class UploadImagesResponse(BaseModel):
    """Response from a complaint photo upload."""
    complaint_id: str
    bucket: str
    urls: list[str]
    submitted: int
    uploaded: int
    failed: int
    files: list[FileOutcomeResponse]


# ============================================================================
# Cache Endpoints
# ============================================================================

class CacheStatsResponse(BaseModel):
    """Decoded-image cache and throttle occupancy."""
    item_count: int
    total_bytes: int
    max_items: int
    max_bytes: int
    hits: int
    misses: int
    evictions: int
    active_operations: int
    queued_operations: int


class CacheTrimResponse(BaseModel):
    """Result of a cache trim or clear."""
    evicted: int
    remaining: int


# ============================================================================
# Health Check
# ============================================================================

class HealthCheckResponse(BaseModel):
    """Health check response."""
    status: str
    s3_connection: str
