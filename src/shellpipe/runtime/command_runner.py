"""Pipe pipeline files through an external command."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import (
    AsyncIterable,
    AsyncIterator,
    Awaitable,
    Callable,
    Mapping,
    Sequence,
)
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TextIO, TypeVar

from shellpipe.command import CommandSpec, parse_command
from shellpipe.config.settings import settings
from shellpipe.errors import (
    CommandFailedError,
    CommandTimeoutError,
    UnsupportedFileShapeError,
)
from shellpipe.runtime.environment import build_environment
from shellpipe.runtime.process import (
    AsyncioProcessSpawner,
    ChildProcess,
    ProcessSpawner,
    terminate_process,
)
from shellpipe.runtime.tee import LinePrefixTee
from shellpipe.runtime.timeout_policy import (
    TimeoutContext,
    TimeoutDomain,
    TimeoutPolicyRegistry,
    get_timeout_policy_registry,
)
from shellpipe.vfs import (
    BufferedContents,
    ByteStream,
    NullContents,
    PipelineFile,
    StreamedContents,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class CommandEvent:
    """Lifecycle event emitted while running commands."""

    event_type: str
    domain: TimeoutDomain
    command: str
    pid: int | None
    detail: str = ""


class ProcessOutputStream:
    """A child's stdout as a :class:`ByteStream`.

    Reading past the last byte waits for the child to finish and raises
    its failure, if any.
    """

    def __init__(
        self,
        program: str,
        process: ChildProcess,
        completion: asyncio.Task[None],
    ) -> None:
        if process.stdout is None:
            raise ValueError(f"{program!r} was started without a stdout pipe")
        self.program = program
        self.process = process
        self._reader = process.stdout
        self._completion = completion

    @property
    def running(self) -> bool:
        return self.process.returncode is None

    async def read(self, n: int = -1) -> bytes:
        chunk = await self._reader.read(n)
        if not chunk:
            await self._completion
        return chunk

    async def __aiter__(self) -> AsyncIterator[bytes]:
        while True:
            chunk = await self.read()
            if not chunk:
                return
            yield chunk


class EchoedOutputStream:
    """A child's stdout relayed through a background reader.

    The reader echoes every chunk as it arrives, whether or not anyone reads
    this stream, and queues the bytes for later reads. Reading past the last
    byte waits for the child to finish and raises its failure, if any.
    """

    def __init__(
        self,
        program: str,
        process: ChildProcess,
        chunks: asyncio.Queue[bytes],
        completion: asyncio.Task[None],
    ) -> None:
        self.program = program
        self.process = process
        self._chunks = chunks
        self._completion = completion
        self._pending = b""
        self._eof = False

    @property
    def running(self) -> bool:
        return self.process.returncode is None

    async def read(self, n: int = -1) -> bytes:
        if not self._pending and not self._eof:
            chunk = await self._chunks.get()
            if chunk:
                self._pending = chunk
            else:
                self._eof = True
        if not self._pending:
            await self._completion
            return b""
        if n < 0:
            n = len(self._pending)
        chunk, self._pending = self._pending[:n], self._pending[n:]
        return chunk


class CommandRunner:
    """Transform stage that runs one command per piped file.

    Each non-null file gets a fresh child process. The file's contents are
    written to the child's stdin and replaced by its stdout:

    * buffered files wait for the child to finish and receive all of its
      output as one buffer;
    * streamed files are returned as soon as the pipe is wired, with the
      child's stdout as their new stream.

    The child's ``PATH`` starts with the local bin directories (default
    ``./node_modules/.bin``) so project-local tools resolve first.
    """

    def __init__(
        self,
        command: str | CommandSpec,
        *,
        env: Mapping[str, str] | None = None,
        cwd: str | Path | None = None,
        local_bin_dirs: Sequence[str | Path] | None = None,
        timeout_seconds: float | None = None,
        check: bool | None = None,
        chunk_size: int | None = None,
        spawner: ProcessSpawner | None = None,
        policy_registry: TimeoutPolicyRegistry | None = None,
        on_event: Callable[[CommandEvent], None] | None = None,
    ) -> None:
        if isinstance(command, CommandSpec):
            self.spec = command
        else:
            self.spec = parse_command(command)
        bin_dirs = settings.local_bin_dirs if local_bin_dirs is None else local_bin_dirs
        self.env = build_environment(bin_dirs, env)
        self.cwd = Path(cwd) if cwd is not None else None
        self.check = settings.check_exit_status if check is None else check
        self._requested_timeout_seconds = timeout_seconds
        self._chunk_size = chunk_size or settings.chunk_size
        self._spawner = spawner or AsyncioProcessSpawner()
        self._policy_registry = policy_registry or get_timeout_policy_registry()
        self._on_event = on_event
        self._pending: set[asyncio.Task[None]] = set()
        self._failures: list[BaseException] = []

    def __repr__(self) -> str:
        return f"CommandRunner({str(self.spec)!r})"

    @property
    def program(self) -> str:
        return self.spec.program

    # --- Transform stage ---------------------------------------------------

    async def __call__(
        self, source: AsyncIterable[PipelineFile]
    ) -> AsyncIterator[PipelineFile]:
        """Transform files from *source* one at a time, in arrival order."""
        async for file in source:
            yield await self.transform(file)

    async def transform(self, file: PipelineFile) -> PipelineFile:
        """Pipe *file* through the command and return it with new contents.

        Raises:
            SpawnError: When the program cannot be started.
            CommandFailedError: When a buffered run exits non-zero and
                ``check`` is enabled.
            CommandTimeoutError: When a buffered run exceeds its timeout.
            UnsupportedFileShapeError: When the contents are not one of the
                known variants.
        """
        contents = file.contents
        if isinstance(contents, NullContents):
            logger.debug("Passing null file %s through %s", file.path, self.program)
            return file
        if isinstance(contents, BufferedContents):
            return await self._transform_buffered(file, contents)
        if isinstance(contents, StreamedContents):
            return await self._transform_streamed(file, contents)
        raise UnsupportedFileShapeError(file.path, contents)

    async def wait_closed(self) -> None:
        """Wait for outstanding streaming children and raise the first failure.

        Call this after the streamed outputs have been drained; a child whose
        output is never read may not be able to exit.
        """
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
        failures, self._failures = self._failures, []
        if failures:
            raise failures[0]

    async def _transform_buffered(
        self, file: PipelineFile, contents: BufferedContents
    ) -> PipelineFile:
        process = await self._spawn(TimeoutDomain.TRANSFORM)
        output = await self._guard(
            process,
            TimeoutDomain.TRANSFORM,
            self._relay_buffered(process, contents),
        )
        logger.debug(
            "%s produced %d bytes for %s", self.program, len(output), file.path
        )
        file.contents = BufferedContents(output)
        return file

    async def _relay_buffered(
        self, process: ChildProcess, contents: BufferedContents
    ) -> bytes:
        feeder = asyncio.create_task(self._feed(process, contents))
        chunks: list[bytes] = []
        try:
            stdout = process.stdout
            if stdout is not None:
                while True:
                    chunk = await stdout.read(self._chunk_size)
                    if not chunk:
                        break
                    chunks.append(chunk)
            await feeder
        finally:
            if not feeder.done():
                feeder.cancel()
        await self._await_exit(process, TimeoutDomain.TRANSFORM)
        return b"".join(chunks)

    async def _transform_streamed(
        self, file: PipelineFile, contents: StreamedContents
    ) -> PipelineFile:
        process = await self._spawn(TimeoutDomain.TRANSFORM)
        feeder = asyncio.create_task(self._feed(process, contents))
        completion = self._supervise(
            process,
            TimeoutDomain.TRANSFORM,
            self._complete_streamed(process, feeder),
        )
        file.contents = StreamedContents(
            ProcessOutputStream(self.program, process, completion)
        )
        return file

    async def _complete_streamed(
        self, process: ChildProcess, feeder: asyncio.Task[None]
    ) -> None:
        try:
            await feeder
        finally:
            if not feeder.done():
                feeder.cancel()
        await self._await_exit(process, TimeoutDomain.TRANSFORM)

    # --- One-shot execution ------------------------------------------------

    async def execute(
        self,
        echo: bool = False,
        *,
        output: TextIO | None = None,
    ) -> AsyncIterator[PipelineFile]:
        """Run the command once with empty input and yield its output file.

        The single yielded file is named after the program and streams the
        child's stdout. With *echo*, output is also written to *output*
        (default ``sys.stdout``) as the child produces it, each line prefixed
        with ``[program] ``. The echo does not depend on the yielded file
        being read; :meth:`wait_closed` returns once it is complete.
        """
        process = await self._spawn(TimeoutDomain.EXECUTE)
        if process.stdin is not None:
            process.stdin.close()
        stream: ByteStream
        if echo and process.stdout is not None:
            chunks: asyncio.Queue[bytes] = asyncio.Queue()
            tee = LinePrefixTee(process.stdout, self.program, output)
            completion = self._supervise(
                process,
                TimeoutDomain.EXECUTE,
                self._relay_echo(process, tee, chunks),
            )
            stream = EchoedOutputStream(self.program, process, chunks, completion)
        else:
            completion = self._supervise(
                process,
                TimeoutDomain.EXECUTE,
                self._await_exit(process, TimeoutDomain.EXECUTE),
            )
            stream = ProcessOutputStream(self.program, process, completion)
        yield PipelineFile.from_stream(self.program, stream)

    async def _relay_echo(
        self,
        process: ChildProcess,
        tee: LinePrefixTee,
        chunks: asyncio.Queue[bytes],
    ) -> None:
        try:
            while True:
                chunk = await tee.read(self._chunk_size)
                if not chunk:
                    break
                chunks.put_nowait(chunk)
        finally:
            chunks.put_nowait(b"")
        await self._await_exit(process, TimeoutDomain.EXECUTE)

    # --- Child process plumbing --------------------------------------------

    async def _spawn(self, domain: TimeoutDomain) -> ChildProcess:
        policy = self._policy_registry.policy_for(domain)
        process = await self._spawner.spawn(
            self.spec.program,
            self.spec.arguments,
            env=self.env,
            cwd=self.cwd,
            new_session=policy.use_process_group,
        )
        self._emit("spawn", domain, process.pid)
        return process

    async def _feed(
        self,
        process: ChildProcess,
        contents: BufferedContents | StreamedContents,
    ) -> None:
        stdin = process.stdin
        if stdin is None:
            return
        try:
            if isinstance(contents, BufferedContents):
                stdin.write(contents.data)
                await stdin.drain()
            else:
                while True:
                    chunk = await contents.stream.read(self._chunk_size)
                    if not chunk:
                        break
                    stdin.write(chunk)
                    await stdin.drain()
        except (BrokenPipeError, ConnectionResetError):
            logger.debug("%s closed its input before reading everything", self.program)
        finally:
            stdin.close()
            with contextlib.suppress(BrokenPipeError, ConnectionResetError):
                await stdin.wait_closed()
            if isinstance(contents, StreamedContents):
                # The child may stop reading before the end of the source.
                aclose = getattr(contents.stream, "aclose", None)
                if aclose is not None:
                    await aclose()

    async def _await_exit(self, process: ChildProcess, domain: TimeoutDomain) -> None:
        returncode = await process.wait()
        self._emit("exit", domain, process.pid, f"status {returncode}")
        if self.check and returncode != 0:
            raise CommandFailedError(self.program, returncode)

    async def _guard(
        self,
        process: ChildProcess,
        domain: TimeoutDomain,
        work: Awaitable[T],
    ) -> T:
        timeout_seconds = self._policy_registry.timeout_for(
            TimeoutContext(
                domain=domain,
                command=str(self.spec),
                requested_timeout_seconds=self._requested_timeout_seconds,
            )
        )
        try:
            if timeout_seconds is None:
                return await work
            return await asyncio.wait_for(work, timeout_seconds)
        except TimeoutError:
            if timeout_seconds is None:
                raise
            self._emit("timeout", domain, process.pid, f"after {timeout_seconds:g}s")
            await self._terminate(process, domain)
            raise CommandTimeoutError(self.program, timeout_seconds) from None
        except asyncio.CancelledError:
            await self._terminate(process, domain)
            raise

    def _supervise(
        self,
        process: ChildProcess,
        domain: TimeoutDomain,
        work: Awaitable[None],
    ) -> asyncio.Task[None]:
        task = asyncio.create_task(self._guard(process, domain, work))
        self._pending.add(task)
        task.add_done_callback(self._on_supervised_done)
        return task

    def _on_supervised_done(self, task: asyncio.Task[None]) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Command %s failed: %s", self.spec, exc)
            self._failures.append(exc)

    async def _terminate(self, process: ChildProcess, domain: TimeoutDomain) -> None:
        policy = self._policy_registry.policy_for(domain)

        def _on_signal(label: str) -> None:
            event_type = "kill" if label in {"SIGKILL", "KILL"} else "terminate"
            self._emit(event_type, domain, process.pid, f"sent {label}")

        await terminate_process(
            process,
            use_process_group=policy.use_process_group,
            terminate_grace_seconds=policy.signal.terminate_grace_seconds,
            on_signal=_on_signal,
        )

    def _emit(
        self,
        event_type: str,
        domain: TimeoutDomain,
        pid: int | None,
        detail: str = "",
    ) -> None:
        logger.debug("%s %s (pid %s) %s", event_type, self.spec, pid, detail)
        _emit_event(
            self._on_event,
            CommandEvent(
                event_type=event_type,
                domain=domain,
                command=str(self.spec),
                pid=pid,
                detail=detail,
            ),
        )


def _emit_event(
    on_event: Callable[[CommandEvent], None] | None,
    event: CommandEvent,
) -> None:
    if on_event is None:
        return
    on_event(event)


def run(command: str | CommandSpec, **options: Any) -> CommandRunner:
    """Build a :class:`CommandRunner` for *command*.

    Parse errors are raised here, before any process is started.
    """
    return CommandRunner(command, **options)
