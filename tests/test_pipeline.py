"""ImageProcessingPipeline tests."""

import logging
from concurrent.futures import ThreadPoolExecutor

import pytest

from image_service.core.cache import ByteCacheStore, make_cache_key
from image_service.core.exceptions import DisposedError
from image_service.core.throttle import ThrottleGate
from image_service.models.files import LocalFile
from image_service.services.pipeline import ImageProcessingPipeline, decode_and_sniff
from image_service.utils.content_type import DEFAULT_CONTENT_TYPE
from conftest import JPEG_BYTES, PNG_BYTES, CountingFile, FailingFile, make_file


@pytest.mark.asyncio
async def test_process_returns_bytes_type_and_name(pipeline, cache):
    file = make_file("pothole.jpg", JPEG_BYTES)

    result = await pipeline.process(file)

    assert result.ok
    assert result.data == JPEG_BYTES
    assert result.mime_type == "image/jpeg"
    assert result.file_name == "pothole.jpg"
    assert make_cache_key(file.path, file.length) in cache


@pytest.mark.asyncio
async def test_png_header_with_dat_extension_reports_png(pipeline):
    result = await pipeline.process(make_file("upload.dat", PNG_BYTES))
    assert result.mime_type == "image/png"


@pytest.mark.asyncio
async def test_picker_hint_takes_priority(pipeline):
    result = await pipeline.process(make_file("photo.jpg", JPEG_BYTES, mime_type="image/heic"))
    assert result.mime_type == "image/heic"


@pytest.mark.asyncio
async def test_cache_hit_skips_reading(pipeline):
    file = CountingFile(path="/tmp/picker/drain.png", data=PNG_BYTES)

    first = await pipeline.process(file)
    second = await pipeline.process(file)

    assert file.reads == 1
    assert second.data == first.data
    assert second.mime_type == "image/png"


@pytest.mark.asyncio
async def test_read_failure_returns_empty_placeholder(pipeline, cache, caplog):
    with caplog.at_level(logging.WARNING):
        result = await pipeline.process(FailingFile("/tmp/picker/broken.jpg"))

    assert not result.ok
    assert result.data == b""
    assert result.mime_type == DEFAULT_CONTENT_TYPE
    assert result.file_name == "broken.jpg"
    assert cache.item_count == 0
    assert any("broken.jpg" in record.getMessage() for record in caplog.records)


@pytest.mark.asyncio
async def test_empty_file_is_not_cached(pipeline, cache):
    result = await pipeline.process(make_file("empty.jpg", b""))

    assert not result.ok
    assert cache.item_count == 0


@pytest.mark.asyncio
async def test_oversized_file_is_returned_uncached(throttle):
    cache = ByteCacheStore(max_items=5, max_bytes=8)
    pipeline = ImageProcessingPipeline(cache=cache, throttle=throttle)

    result = await pipeline.process(make_file("big.jpg", JPEG_BYTES))

    assert result.data == JPEG_BYTES
    assert cache.item_count == 0


@pytest.mark.asyncio
async def test_background_workers_produce_identical_results(throttle):
    files = [
        make_file("a.dat", PNG_BYTES),
        make_file("b.jpg", JPEG_BYTES),
        make_file("c.jpg", JPEG_BYTES, mime_type="image/heic"),
    ]
    inline = ImageProcessingPipeline(cache=ByteCacheStore(), throttle=throttle)

    with ThreadPoolExecutor(max_workers=2) as executor:
        offloaded = ImageProcessingPipeline(
            cache=ByteCacheStore(),
            throttle=ThrottleGate(max_concurrent=2),
            supports_background_workers=True,
            executor=executor,
        )
        assert offloaded.uses_background_workers
        for file in files:
            assert await offloaded.process(file) == await inline.process(file)


@pytest.mark.asyncio
async def test_local_file_source(tmp_path, pipeline):
    path = tmp_path / "IMG 0001.JPG"
    path.write_bytes(JPEG_BYTES)

    result = await pipeline.process(LocalFile.from_path(path))

    assert result.data == JPEG_BYTES
    assert result.file_name == "IMG 0001.JPG"
    assert result.mime_type == "image/jpeg"


@pytest.mark.asyncio
async def test_missing_local_file_degrades_to_empty_result(tmp_path, pipeline):
    missing = LocalFile(path=str(tmp_path / "gone.jpg"), length=100)

    result = await pipeline.process(missing)

    assert not result.ok
    assert result.file_name == "gone.jpg"


@pytest.mark.asyncio
async def test_disposed_throttle_raises(pipeline, throttle):
    throttle.dispose()
    with pytest.raises(DisposedError):
        await pipeline.process(make_file("late.jpg"))


def test_decode_and_sniff_copies_bytes():
    data, mime_type = decode_and_sniff(bytearray(PNG_BYTES), "x.bin")
    assert isinstance(data, bytes)
    assert mime_type == "image/png"
