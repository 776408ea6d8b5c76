"""Echo a byte stream to a text sink with a per-line title prefix."""

from __future__ import annotations

import codecs
import sys
from typing import TextIO

from shellpipe.vfs import ByteStream


class LinePrefixTee:
    """A :class:`ByteStream` that copies everything it reads to *output*.

    Each echoed line starts with ``[title] ``. Bytes are passed through
    unchanged; only the echo is decoded (UTF-8, invalid bytes replaced),
    and characters split across reads are decoded once complete.
    """

    def __init__(
        self,
        source: ByteStream,
        title: str,
        output: TextIO | None = None,
    ) -> None:
        self._source = source
        self._prefix = f"[{title}] "
        self._output = output
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._at_line_start = True

    @property
    def source(self) -> ByteStream:
        return self._source

    async def read(self, n: int = -1) -> bytes:
        chunk = await self._source.read(n)
        self._echo(self._decoder.decode(chunk, final=not chunk))
        return chunk

    def _echo(self, text: str) -> None:
        if not text:
            return
        output = self._output if self._output is not None else sys.stdout
        pieces: list[str] = []
        start = 0
        while start < len(text):
            end = text.find("\n", start)
            end = len(text) if end == -1 else end + 1
            if self._at_line_start:
                pieces.append(self._prefix)
            pieces.append(text[start:end])
            self._at_line_start = text[end - 1] == "\n"
            start = end
        output.write("".join(pieces))
        output.flush()
