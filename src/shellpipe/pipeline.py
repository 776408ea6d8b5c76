"""Composing stages and moving files between disk and a pipeline."""

from __future__ import annotations

import asyncio
import glob
import logging
from collections.abc import AsyncIterable, AsyncIterator, Iterable, Sequence
from pathlib import Path
from typing import Protocol

from shellpipe.config.settings import settings
from shellpipe.errors import DestinationConflictError, UnsupportedFileShapeError
from shellpipe.vfs import (
    BufferedContents,
    FileByteStream,
    NullContents,
    PipelineFile,
    StreamedContents,
)

logger = logging.getLogger(__name__)


class Stage(Protocol):
    """Turns a stream of files into another stream of files."""

    def __call__(
        self, source: AsyncIterable[PipelineFile]
    ) -> AsyncIterator[PipelineFile]: ...


async def iterate(files: Iterable[PipelineFile]) -> AsyncIterator[PipelineFile]:
    """Lift an ordinary iterable of files into an async source."""
    for file in files:
        yield file


def pipe(
    source: AsyncIterable[PipelineFile] | Iterable[PipelineFile],
    *stages: Stage,
) -> AsyncIterable[PipelineFile]:
    """Chain *stages* onto *source* in order."""
    stream: AsyncIterable[PipelineFile]
    if isinstance(source, AsyncIterable):
        stream = source
    else:
        stream = iterate(source)
    for stage in stages:
        stream = stage(stream)
    return stream


async def collect(source: AsyncIterable[PipelineFile]) -> list[PipelineFile]:
    """Drain *source* into a list."""
    return [file async for file in source]


async def read_contents(file: PipelineFile, chunk_size: int | None = None) -> bytes:
    """Return the full contents of *file*, draining it when it is streamed.

    A streamed file is switched to buffered contents afterwards so it can be
    read again.
    """
    contents = file.contents
    if isinstance(contents, NullContents):
        return b""
    if isinstance(contents, BufferedContents):
        return contents.data
    if isinstance(contents, StreamedContents):
        size = chunk_size or settings.chunk_size
        chunks: list[bytes] = []
        while True:
            chunk = await contents.stream.read(size)
            if not chunk:
                break
            chunks.append(chunk)
        data = b"".join(chunks)
        file.contents = BufferedContents(data)
        return data
    raise UnsupportedFileShapeError(file.path, contents)


def glob_base(pattern: str | Path) -> Path:
    """Return the directory part of *pattern* before its first wildcard.

    ``src/**/*.txt`` gives ``src``, ``docs/index.md`` gives ``docs`` and a
    bare ``*.txt`` gives ``.``.
    """
    static: list[str] = []
    for part in Path(pattern).parts[:-1]:
        if glob.has_magic(part):
            break
        static.append(part)
    return Path(*static)


def _expand(patterns: Sequence[str | Path]) -> list[tuple[Path, Path]]:
    found: list[tuple[Path, Path]] = []
    seen: set[Path] = set()
    for pattern in patterns:
        base = glob_base(pattern)
        matches = sorted(glob.glob(str(pattern), recursive=True))
        if not matches and Path(pattern).exists():
            matches = [str(pattern)]
        for match in matches:
            path = Path(match)
            if path.is_file() and path not in seen:
                seen.add(path)
                found.append((path, base))
    return found


async def src(
    patterns: Sequence[str | Path],
    *,
    base: str | Path | None = None,
    buffer: bool = True,
) -> AsyncIterator[PipelineFile]:
    """Yield files matching glob *patterns*.

    With ``buffer=True`` each file is read into memory; otherwise its
    contents stream from disk as they are consumed. Without *base*, each
    file's base is the part of its pattern before the first wildcard, so
    output paths keep the folders the wildcards matched.
    """
    found = _expand(patterns)
    if not found:
        logger.warning("No files matched %s", list(patterns))
    for path, pattern_base in found:
        base_path = Path(base) if base is not None else pattern_base
        if buffer:
            data = await asyncio.to_thread(path.read_bytes)
            yield PipelineFile.from_bytes(path, data, base=base_path)
        else:
            yield PipelineFile.from_stream(path, FileByteStream(path), base=base_path)


def dest(directory: str | Path) -> Stage:
    """Stage that writes each file under *directory* and forwards it.

    Files are written at ``directory / file.relative``. Streamed files are
    drained first and forwarded with buffered contents. Null files are
    forwarded without writing anything. Two files that map to the same
    output path raise :class:`DestinationConflictError` instead of
    overwriting each other.
    """
    target = Path(directory)

    async def _dest(source: AsyncIterable[PipelineFile]) -> AsyncIterator[PipelineFile]:
        written: dict[Path, Path] = {}
        async for file in source:
            if file.is_null():
                yield file
                continue
            out_path = target / file.relative
            if out_path in written:
                raise DestinationConflictError(out_path, written[out_path], file.path)
            written[out_path] = file.path
            data = await read_contents(file)
            out_path.parent.mkdir(parents=True, exist_ok=True)
            await asyncio.to_thread(out_path.write_bytes, data)
            logger.info("Wrote %s (%d bytes)", out_path, len(data))
            yield file

    return _dest
