"""Shared fixtures and fakes for the image service tests."""

import asyncio
from typing import Callable, Dict, List, Optional, Tuple

import pytest

from image_service.core.cache import ByteCacheStore
from image_service.core.exceptions import StorageError, StorageErrorKind
from image_service.core.throttle import ThrottleGate
from image_service.models.files import InMemoryFile
from image_service.services.pipeline import ImageProcessingPipeline
from image_service.services.uploader import UploadOrchestrator

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 24
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 28
GIF_BYTES = b"GIF89a" + b"\x00" * 26
WEBP_BYTES = b"RIFF\x24\x00\x00\x00WEBPVP8 " + b"\x00" * 16

BUCKET = "complaint-images"


class FakeStorage:
    """In-memory object store recording every call."""

    def __init__(self, base_url: str = "http://minio.test:9000"):
        self.base_url = base_url
        self.objects: Dict[Tuple[str, str], Tuple[bytes, str]] = {}
        self.put_calls: List[Tuple[str, str, str]] = []
        self.delete_calls: List[Tuple[str, List[str]]] = []
        self.fail_keys: Dict[str, Exception] = {}
        self.delete_error: Optional[Exception] = None
        self.on_put: Optional[Callable[[str], None]] = None

    async def put_object(self, bucket, key, data, content_type, overwrite=False):
        self.put_calls.append((bucket, key, content_type))
        await asyncio.sleep(0)
        if key in self.fail_keys:
            raise self.fail_keys[key]
        if not overwrite and (bucket, key) in self.objects:
            raise StorageError(StorageErrorKind.CONFLICT, f"{key} already exists", 412)
        self.objects[(bucket, key)] = (data, content_type)
        if self.on_put is not None:
            self.on_put(key)

    async def delete_objects(self, bucket, keys):
        self.delete_calls.append((bucket, list(keys)))
        if self.delete_error is not None:
            raise self.delete_error
        for key in keys:
            self.objects.pop((bucket, key), None)

    def get_public_url(self, bucket, key):
        return f"{self.base_url}/{bucket}/{key}"


class FailingFile:
    """File source whose read always fails."""

    def __init__(self, path: str = "broken.jpg", length: int = 10):
        self.path = path
        self.length = length
        self.mime_type = None

    async def read_bytes(self) -> bytes:
        raise OSError(f"cannot read {self.path}")


class CountingFile(InMemoryFile):
    """In-memory file that counts reads."""

    reads: int = 0

    async def read_bytes(self) -> bytes:
        self.reads += 1
        return await super().read_bytes()


class BlockingFile(InMemoryFile):
    """In-memory file whose read waits for an event."""

    def __init__(self, path: str, data: bytes, release: asyncio.Event):
        super().__init__(path=path, data=data)
        self.release = release

    async def read_bytes(self) -> bytes:
        await self.release.wait()
        return self.data


def make_file(name: str, data: bytes = JPEG_BYTES, mime_type: Optional[str] = None) -> InMemoryFile:
    return InMemoryFile(path=f"/tmp/picker/{name}", data=data, mime_type=mime_type)


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def cache() -> ByteCacheStore:
    return ByteCacheStore(max_items=15, max_bytes=50 * 1024 * 1024)


@pytest.fixture
def throttle() -> ThrottleGate:
    return ThrottleGate(max_concurrent=3)


@pytest.fixture
def pipeline(cache, throttle) -> ImageProcessingPipeline:
    return ImageProcessingPipeline(cache=cache, throttle=throttle)


@pytest.fixture
def uploader(pipeline, throttle, storage) -> UploadOrchestrator:
    return UploadOrchestrator(
        pipeline=pipeline,
        throttle=throttle,
        storage=storage,
        bucket=BUCKET,
        batch_delay=0,
    )
