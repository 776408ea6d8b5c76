"""shellpipe - pipe pipeline files through external commands."""

from shellpipe.command import CommandSpec, parse_command, parse_tree
from shellpipe.errors import (
    CommandFailedError,
    CommandTimeoutError,
    DestinationConflictError,
    ParseError,
    ShellpipeError,
    SpawnError,
    UnsupportedFileShapeError,
)
from shellpipe.pipeline import collect, dest, pipe, read_contents, src
from shellpipe.runtime import CommandRunner, run
from shellpipe.vfs import (
    BufferedContents,
    BytesStream,
    NullContents,
    PipelineFile,
    StreamedContents,
)

__version__ = "0.1.0"

__all__ = [
    "BufferedContents",
    "BytesStream",
    "CommandFailedError",
    "CommandRunner",
    "CommandSpec",
    "CommandTimeoutError",
    "DestinationConflictError",
    "NullContents",
    "ParseError",
    "PipelineFile",
    "ShellpipeError",
    "SpawnError",
    "StreamedContents",
    "UnsupportedFileShapeError",
    "collect",
    "dest",
    "parse_command",
    "parse_tree",
    "pipe",
    "read_contents",
    "run",
    "src",
]
