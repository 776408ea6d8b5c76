"""Process spawning protocol and the asyncio-backed implementation."""

from __future__ import annotations

import asyncio
import logging
import os
import signal
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import Protocol

from shellpipe.errors import SpawnError
from shellpipe.vfs import ByteStream

logger = logging.getLogger(__name__)

_EXIT_POLL_SECONDS = 0.01


class ChildStdin(Protocol):
    """Writable end of a child's standard input."""

    def write(self, data: bytes) -> None: ...

    async def drain(self) -> None: ...

    def close(self) -> None: ...

    async def wait_closed(self) -> None: ...


class ChildProcess(Protocol):
    """Running child process with piped stdin and stdout.

    ``asyncio.subprocess.Process`` satisfies this protocol.
    """

    @property
    def pid(self) -> int: ...

    @property
    def returncode(self) -> int | None: ...

    @property
    def stdin(self) -> ChildStdin | None: ...

    @property
    def stdout(self) -> ByteStream | None: ...

    async def wait(self) -> int: ...

    def send_signal(self, sig: int) -> None: ...

    def terminate(self) -> None: ...

    def kill(self) -> None: ...


class ProcessSpawner(Protocol):
    """Creates child processes without going through a shell."""

    async def spawn(
        self,
        program: str,
        args: Sequence[str],
        *,
        env: Mapping[str, str],
        cwd: Path | None = None,
        new_session: bool = False,
    ) -> ChildProcess:
        """Start *program* with *args*.

        Raises:
            SpawnError: When the program cannot be started.
        """
        ...  # pragma: no cover


class AsyncioProcessSpawner:
    """Spawns children with :func:`asyncio.create_subprocess_exec`.

    The child's stderr is inherited from this process.
    """

    async def spawn(
        self,
        program: str,
        args: Sequence[str],
        *,
        env: Mapping[str, str],
        cwd: Path | None = None,
        new_session: bool = False,
    ) -> ChildProcess:
        try:
            process = await asyncio.create_subprocess_exec(
                program,
                *args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                env=dict(env),
                cwd=str(cwd) if cwd is not None else None,
                start_new_session=bool(new_session and os.name != "nt"),
            )
        except FileNotFoundError as exc:
            raise SpawnError(program, "program not found") from exc
        except PermissionError as exc:
            raise SpawnError(program, "permission denied") from exc
        except OSError as exc:
            raise SpawnError(program, exc.strerror or str(exc)) from exc

        logger.debug("Spawned %s (pid %s)", program, process.pid)
        return process


async def wait_for_exit(process: ChildProcess, timeout_seconds: float) -> bool:
    """Wait until *process* has exited, without requiring its pipes to drain."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout_seconds
    while process.returncode is None:
        if loop.time() >= deadline:
            return False
        await asyncio.sleep(_EXIT_POLL_SECONDS)
    return True


async def terminate_process(
    process: ChildProcess,
    *,
    use_process_group: bool,
    terminate_grace_seconds: float,
    on_signal: Callable[[str], None] | None = None,
) -> tuple[str, ...]:
    """Stop *process* with SIGTERM, escalating to SIGKILL after the grace period.

    Returns the labels of the signals that were actually sent.
    """
    signals: list[str] = []

    def _send(sig: int, label: str) -> bool:
        if process.returncode is not None:
            return False
        try:
            if use_process_group and os.name != "nt":
                os.killpg(process.pid, sig)
            else:
                process.send_signal(sig)
        except ProcessLookupError:
            return False
        signals.append(label)
        if on_signal is not None:
            on_signal(label)
        return True

    _send(signal.SIGTERM, "SIGTERM")
    if await wait_for_exit(process, terminate_grace_seconds):
        return tuple(signals)

    kill_signal = getattr(signal, "SIGKILL", None)
    if kill_signal is None:
        if process.returncode is None:
            process.kill()
            signals.append("KILL")
            if on_signal is not None:
                on_signal("KILL")
    else:
        _send(kill_signal, "SIGKILL")

    if not await wait_for_exit(process, terminate_grace_seconds):
        logger.warning("Process %s did not exit after SIGKILL", process.pid)
    return tuple(signals)
