"""
Picked file sources.
Opaque handles the pipeline reads from, independent of where the file lives.
"""

import asyncio
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Protocol


class PickedFile(Protocol):
    """A file chosen by the user, readable once or many times."""

    @property
    def path(self) -> str: ...

    @property
    def length(self) -> int: ...

    @property
    def mime_type(self) -> Optional[str]: ...

    async def read_bytes(self) -> bytes: ...


def file_name_of(file: PickedFile) -> str:
    """Return the base name of a picked file's path."""
    return os.path.basename(file.path.rstrip("/\\")) or file.path


@dataclass
class LocalFile:
    """File on local disk, read on a worker thread."""
    path: str
    length: int
    mime_type: Optional[str] = None

    @classmethod
    def from_path(cls, path: "str | Path", mime_type: Optional[str] = None) -> "LocalFile":
        """Create a handle for an existing file, recording its current size."""
        path = Path(path)
        return cls(path=str(path), length=path.stat().st_size, mime_type=mime_type)

    async def read_bytes(self) -> bytes:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, Path(self.path).read_bytes)


@dataclass
class InMemoryFile:
    """File whose bytes are already in memory (web pickers, request bodies)."""
    path: str
    data: bytes = field(repr=False)
    mime_type: Optional[str] = None

    @property
    def length(self) -> int:
        return len(self.data)

    async def read_bytes(self) -> bytes:
        return self.data
