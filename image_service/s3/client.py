"""
MinIO S3 Client wrapper.
Object storage for complaint photos: upload, batched delete, public URLs and bucket policies.
"""

import asyncio
import json
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, List, Optional
from urllib.parse import quote

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from image_service.core.config import Settings
from image_service.core.exceptions import StorageError, StorageErrorKind
from image_service.s3.config import (
    CONFLICT_CODES,
    DELETE_BATCH_SIZE,
    NOT_FOUND_CODES,
    UNAUTHORIZED_CODES,
)

logger = logging.getLogger(__name__)


def classify_client_error(error: ClientError) -> StorageError:
    """
    Convert a botocore ClientError into a StorageError.

    Args:
        error: Error raised by the boto3 client

    Returns:
        StorageError carrying kind, message and HTTP status
    """
    details = error.response.get("Error", {})
    code = str(details.get("Code", ""))
    message = details.get("Message") or str(error)
    status_code = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")

    if code in UNAUTHORIZED_CODES or status_code in (401, 403):
        kind = StorageErrorKind.UNAUTHORIZED
    elif code in NOT_FOUND_CODES or status_code == 404:
        kind = StorageErrorKind.NOT_FOUND
    elif code in CONFLICT_CODES or status_code in (409, 412):
        kind = StorageErrorKind.CONFLICT
    else:
        kind = StorageErrorKind.UNKNOWN

    return StorageError(kind, f"{code}: {message}" if code else message, status_code)


class S3Client:
    """Wrapper for MinIO S3 operations."""

    def __init__(
        self,
        endpoint: str,
        access_key: str,
        secret_key: str,
        secure: bool = False,
        region: str = "us-east-1",
        public_base_url: Optional[str] = None,
        max_workers: int = 4,
        client: Any = None
    ):
        """
        Initialize S3 client with MinIO configuration.

        Args:
            endpoint: MinIO endpoint, with or without protocol
            access_key: Access key ID
            secret_key: Secret access key
            secure: Use HTTPS when endpoint has no protocol
            region: Region name (MinIO ignores it)
            public_base_url: Base for public URLs (defaults to the endpoint)
            max_workers: Threads used for blocking boto3 calls
            client: Pre-built boto3 client (tests)
        """
        # Parse endpoint to extract protocol and host
        endpoint_url = endpoint
        if not endpoint_url.startswith(('http://', 'https://')):
            protocol = 'https' if secure else 'http'
            endpoint_url = f"{protocol}://{endpoint_url}"

        self.client = client if client is not None else boto3.client(
            's3',
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            config=Config(signature_version='s3v4'),
            region_name=region
        )

        self.endpoint_url = endpoint_url
        self.public_base_url = (public_base_url or endpoint_url).rstrip("/")

        # Bounded executor keeps concurrent boto3 calls from spawning threads freely
        self.executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="s3-io")

        logger.info(f"S3 client initialized with endpoint: {endpoint_url}")

    @classmethod
    def from_settings(cls, settings: Settings) -> "S3Client":
        """Build a client from application settings."""
        return cls(
            endpoint=settings.MINIO_ENDPOINT,
            access_key=settings.MINIO_ACCESS_KEY,
            secret_key=settings.MINIO_SECRET_KEY,
            secure=settings.MINIO_SECURE,
            region=settings.MINIO_REGION,
            public_base_url=settings.PUBLIC_BASE_URL,
            max_workers=settings.STORAGE_WORKERS,
        )

    async def put_object(
        self,
        bucket: str,
        key: str,
        data: bytes,
        content_type: str,
        overwrite: bool = False
    ) -> None:
        """
        Upload bytes to S3/MinIO.

        Args:
            bucket: Bucket name
            key: Object key (file path in bucket)
            data: Object body
            content_type: MIME type of the object
            overwrite: Replace an existing object at the same key

        Raises:
            StorageError: If upload fails (CONFLICT if the key exists and overwrite is False)
        """
        params = {
            "Bucket": bucket,
            "Key": key,
            "Body": data,
            "ContentType": content_type,
        }
        if not overwrite:
            # Conditional write: rejected with 412 when the key already exists
            params["IfNoneMatch"] = "*"

        await self._run(lambda: self.client.put_object(**params))
        logger.info(f"Uploaded object: {bucket}/{key} ({len(data)} bytes, {content_type})")

    async def delete_objects(self, bucket: str, keys: List[str]) -> None:
        """
        Delete several objects, tolerating per-key failures.

        Args:
            bucket: Bucket name
            keys: Object keys to delete

        Raises:
            StorageError: If a delete request fails as a whole
        """
        for start in range(0, len(keys), DELETE_BATCH_SIZE):
            chunk = keys[start:start + DELETE_BATCH_SIZE]
            response = await self._run(
                lambda chunk=chunk: self.client.delete_objects(
                    Bucket=bucket,
                    Delete={
                        "Objects": [{"Key": key} for key in chunk],
                        "Quiet": True,
                    },
                )
            )

            errors = response.get("Errors", [])
            for error in errors:
                logger.warning(
                    f"Failed to delete {bucket}/{error.get('Key')}: "
                    f"{error.get('Code')} {error.get('Message')}"
                )
            logger.info(f"Deleted {len(chunk) - len(errors)}/{len(chunk)} objects from {bucket}")

    def get_public_url(self, bucket: str, key: str) -> str:
        """
        Get direct public URL for an object in a public bucket.

        Args:
            bucket: Bucket name
            key: Object key

        Returns:
            Direct URL to the object
        """
        return f"{self.public_base_url}/{bucket}/{quote(key.strip('/'))}"

    def allow_public_reads(self, bucket: str) -> None:
        """
        Let anyone GET photos in the bucket so complaint URLs open without signing.

        Listing and writes stay restricted to authenticated callers.

        Args:
            bucket: Bucket name

        Raises:
            ClientError: If the policy is rejected
        """
        policy = {
            "Version": "2012-10-17",
            "Statement": [
                {
                    "Sid": "PublicReadComplaintPhotos",
                    "Effect": "Allow",
                    "Principal": {"AWS": "*"},
                    "Action": ["s3:GetObject"],
                    "Resource": [f"arn:aws:s3:::{bucket}/*"]
                }
            ]
        }

        try:
            self.client.put_bucket_policy(Bucket=bucket, Policy=json.dumps(policy))
            logger.info(f"Photo bucket {bucket} is publicly readable")
        except ClientError as e:
            logger.error(f"Failed to open {bucket} for public reads: {e}")
            raise

    def ensure_bucket_exists(self, bucket: str) -> None:
        """
        Ensure the photo bucket exists, creating it with a public-read policy.

        Args:
            bucket: Bucket name

        Raises:
            ClientError: If bucket creation fails
        """
        try:
            self.client.head_bucket(Bucket=bucket)
            logger.info(f"Bucket exists: {bucket}")
        except ClientError as e:
            error_code = e.response['Error']['Code']
            if error_code in ('404', 'NoSuchBucket', 'NotFound'):
                try:
                    self.client.create_bucket(Bucket=bucket)
                    logger.info(f"Created bucket: {bucket}")
                    self.allow_public_reads(bucket)
                except ClientError as create_error:
                    logger.error(f"Failed to create bucket {bucket}: {create_error}")
                    raise
            else:
                logger.error(f"Error checking bucket {bucket}: {e}")
                raise

    def close(self) -> None:
        """Stop accepting storage calls and release worker threads."""
        self.executor.shutdown(wait=False)
        logger.info("S3 client closed")

    async def _run(self, call: Callable[[], Any]) -> Any:
        """Run a blocking boto3 call on the storage executor."""
        try:
            return await asyncio.get_event_loop().run_in_executor(self.executor, call)
        except ClientError as e:
            raise classify_client_error(e) from e
        except BotoCoreError as e:
            raise StorageError(StorageErrorKind.UNKNOWN, str(e)) from e
