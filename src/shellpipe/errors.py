"""Exception hierarchy for shellpipe."""

from __future__ import annotations

from pathlib import Path


class ShellpipeError(Exception):
    """Base exception for shellpipe."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class ConfigurationError(ShellpipeError):
    """Raised when settings or a recipe file cannot be used."""


class ParseError(ShellpipeError):
    """Raised when a command string does not match the command grammar."""

    def __init__(self, command: str, position: int, fragment: str, reason: str) -> None:
        self.command = command
        self.position = position
        self.fragment = fragment
        self.reason = reason
        super().__init__(
            f"{reason} at column {position + 1}: {fragment!r}",
            hint=f"while parsing {command!r}",
        )


class CommandError(ShellpipeError):
    """Base exception for failures of a spawned command."""

    def __init__(self, program: str, message: str, *, hint: str | None = None) -> None:
        self.program = program
        super().__init__(message, hint=hint)


class SpawnError(CommandError):
    """Raised when the program cannot be started."""

    def __init__(self, program: str, reason: str) -> None:
        self.reason = reason
        super().__init__(
            program,
            f"Could not start {program!r}: {reason}",
            hint="Check that the program is installed and on PATH "
            "or in one of the local bin directories.",
        )


class CommandFailedError(CommandError):
    """Raised when a command exits with a non-zero status."""

    def __init__(self, program: str, returncode: int) -> None:
        self.returncode = returncode
        super().__init__(program, f"{program!r} exited with status {returncode}")


class CommandTimeoutError(CommandError):
    """Raised when a command runs past its timeout."""

    def __init__(self, program: str, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(
            program,
            f"{program!r} timed out after {timeout_seconds:g}s",
        )


class UnsupportedFileShapeError(ShellpipeError):
    """Raised when a file's contents are not null, buffered or streamed."""

    def __init__(self, path: Path, contents: object) -> None:
        self.path = path
        self.contents_type = type(contents).__name__
        super().__init__(
            f"Unsupported contents for {path}: {self.contents_type}",
            hint="Use NullContents, BufferedContents or StreamedContents.",
        )


class DestinationConflictError(ShellpipeError):
    """Raised when two files in one run would be written to the same path."""

    def __init__(self, target: Path, first: Path, second: Path) -> None:
        self.target = target
        self.first = first
        self.second = second
        super().__init__(
            f"{first} and {second} would both be written to {target}",
            hint="Pass a base directory so output paths keep their folders.",
        )
