"""
Configuration management for the Complaint Image Service.
Loads environment variables and platform capabilities.
"""

import sys
from typing import Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # MinIO / S3 Configuration
    MINIO_ENDPOINT: str = "localhost:9000"
    MINIO_ACCESS_KEY: str = "minioadmin"
    MINIO_SECRET_KEY: str = "minioadmin"
    MINIO_SECURE: bool = False    # Set to True for HTTPS
    MINIO_REGION: str = "us-east-1"

    # Base for public object URLs (defaults to the MinIO endpoint)
    PUBLIC_BASE_URL: Optional[str] = None

    # Complaint photos
    IMAGE_BUCKET: str = "complaint-images"
    OBJECT_KEY_PREFIX: str = "complaints"

    # Decoded bytes cache
    CACHE_MAX_ITEMS: int = 15
    CACHE_MAX_BYTES: int = 50 * 1024 * 1024  # 50MB

    # Throttle and batching
    MAX_CONCURRENT_OPERATIONS: int = 3
    BATCH_DELAY_MS: int = 50      # Pause between upload batches

    # Background decode workers
    ENABLE_BACKGROUND_PROCESSING: bool = True
    BACKGROUND_WORKERS: int = 2

    # Threads used for blocking boto3 calls
    STORAGE_WORKERS: int = 4

    # Application
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()


def platform_supports_background_workers() -> bool:
    """
    Check whether the interpreter can run decode work on worker threads.

    Browser (Pyodide) and WASI builds run on a single thread.

    Returns:
        True if a thread pool can be used for background decoding
    """
    return sys.platform not in ("emscripten", "wasi")
