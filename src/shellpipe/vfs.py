"""Virtual files that flow through a pipeline."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Protocol, TypeAlias, runtime_checkable

DEFAULT_CHUNK_SIZE = 64 * 1024


@runtime_checkable
class ByteStream(Protocol):
    """Readable source of bytes; ``read`` returns ``b""`` at end of output."""

    async def read(self, n: int = -1) -> bytes: ...


class BytesStream:
    """In-memory :class:`ByteStream`."""

    def __init__(self, data: bytes) -> None:
        self._data = data
        self._offset = 0

    async def read(self, n: int = -1) -> bytes:
        if n < 0:
            end = len(self._data)
        else:
            end = min(len(self._data), self._offset + n)
        chunk = self._data[self._offset : end]
        self._offset = end
        return chunk


class FileByteStream:
    """Reads a file on disk in chunks without blocking the event loop."""

    def __init__(self, path: Path, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        self.path = path
        self._chunk_size = chunk_size
        self._handle: BinaryIO | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def read(self, n: int = -1) -> bytes:
        if self._closed:
            return b""
        if self._handle is None:
            self._handle = await asyncio.to_thread(self.path.open, "rb")
        size = self._chunk_size if n < 0 else n
        chunk = await asyncio.to_thread(self._handle.read, size)
        if n < 0 and chunk:
            rest = await asyncio.to_thread(self._handle.read)
            chunk += rest
        if not chunk:
            await self.aclose()
        return chunk

    async def aclose(self) -> None:
        self._closed = True
        if self._handle is not None:
            handle, self._handle = self._handle, None
            await asyncio.to_thread(handle.close)


@dataclass(frozen=True, slots=True)
class NullContents:
    """A file with no contents at all."""


@dataclass(frozen=True, slots=True)
class BufferedContents:
    """Contents held fully in memory."""

    data: bytes


@dataclass(frozen=True, slots=True)
class StreamedContents:
    """Contents delivered incrementally from a live source."""

    stream: ByteStream


FileContents: TypeAlias = NullContents | BufferedContents | StreamedContents


@dataclass
class PipelineFile:
    """One unit of data flowing through a pipeline.

    ``contents`` is replaced in place by transform stages; the file object
    itself is forwarded downstream.
    """

    path: Path
    contents: FileContents = field(default_factory=NullContents)
    base: Path | None = None

    def __post_init__(self) -> None:
        self.path = Path(self.path)
        if self.base is not None:
            self.base = Path(self.base)

    @classmethod
    def from_bytes(
        cls, path: str | Path, data: bytes, *, base: Path | None = None
    ) -> PipelineFile:
        return cls(path=Path(path), contents=BufferedContents(data), base=base)

    @classmethod
    def from_stream(
        cls, path: str | Path, stream: ByteStream, *, base: Path | None = None
    ) -> PipelineFile:
        return cls(path=Path(path), contents=StreamedContents(stream), base=base)

    @classmethod
    def null(cls, path: str | Path, *, base: Path | None = None) -> PipelineFile:
        return cls(path=Path(path), contents=NullContents(), base=base)

    def is_null(self) -> bool:
        return isinstance(self.contents, NullContents)

    def is_buffer(self) -> bool:
        return isinstance(self.contents, BufferedContents)

    def is_stream(self) -> bool:
        return isinstance(self.contents, StreamedContents)

    @property
    def relative(self) -> Path:
        """Path relative to ``base``, or the file name when there is no base."""
        if self.base is not None:
            try:
                return self.path.relative_to(self.base)
            except ValueError:
                pass
        return Path(self.path.name)
