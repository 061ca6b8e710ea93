"""
Object storage contract used by the upload orchestrator.
"""

from typing import List, Protocol


class ObjectStorage(Protocol):
    """
    Remote object store.

    put_object and delete_objects raise StorageError on failure.
    delete_objects is best-effort: per-key failures are tolerated.
    get_public_url is pure and deterministic for a bucket and key.
    """

    async def put_object(
        self,
        bucket: str,
        key: str,
        data: bytes,
        content_type: str,
        overwrite: bool = False
    ) -> None: ...

    async def delete_objects(self, bucket: str, keys: List[str]) -> None: ...

    def get_public_url(self, bucket: str, key: str) -> str: ...
