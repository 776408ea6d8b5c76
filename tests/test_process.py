"""Tests for the asyncio process spawner and signal escalation."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

from shellpipe.errors import SpawnError
from shellpipe.runtime.environment import build_environment
from shellpipe.runtime.process import AsyncioProcessSpawner, terminate_process


@pytest.mark.anyio
async def test_spawner_maps_missing_program_to_spawn_error() -> None:
    spawner = AsyncioProcessSpawner()

    with pytest.raises(SpawnError) as exc_info:
        await spawner.spawn("shellpipe-missing-binary", [], env=dict(os.environ))

    assert exc_info.value.reason == "program not found"
    assert isinstance(exc_info.value.__cause__, FileNotFoundError)


@pytest.mark.anyio
async def test_spawner_maps_non_executable_file_to_spawn_error(
    tmp_path: Path,
) -> None:
    script = tmp_path / "not-executable"
    script.write_text("echo hi\n", encoding="utf-8")
    spawner = AsyncioProcessSpawner()

    with pytest.raises(SpawnError) as exc_info:
        await spawner.spawn(str(script), [], env=dict(os.environ))

    assert exc_info.value.reason == "permission denied"


@pytest.mark.anyio
async def test_terminate_process_sends_sigterm_first() -> None:
    spawner = AsyncioProcessSpawner()
    process = await spawner.spawn(
        sys.executable,
        ["-c", "import time; time.sleep(30)"],
        env=dict(os.environ),
        new_session=True,
    )
    labels: list[str] = []

    sent = await terminate_process(
        process,
        use_process_group=True,
        terminate_grace_seconds=5.0,
        on_signal=labels.append,
    )

    assert sent == ("SIGTERM",)
    assert labels == ["SIGTERM"]
    assert process.returncode is not None


@pytest.mark.anyio
async def test_terminate_process_escalates_to_sigkill() -> None:
    spawner = AsyncioProcessSpawner()
    process = await spawner.spawn(
        sys.executable,
        [
            "-c",
            "import signal, time\n"
            "signal.signal(signal.SIGTERM, signal.SIG_IGN)\n"
            "print('ready', flush=True)\n"
            "time.sleep(30)\n",
        ],
        env=dict(os.environ),
        new_session=True,
    )
    assert process.stdout is not None
    assert await process.stdout.readline() == b"ready\n"

    sent = await terminate_process(
        process,
        use_process_group=True,
        terminate_grace_seconds=0.2,
    )

    assert sent == ("SIGTERM", "SIGKILL")
    assert process.returncode is not None


@pytest.mark.anyio
async def test_terminate_process_skips_exited_children() -> None:
    spawner = AsyncioProcessSpawner()
    process = await spawner.spawn(sys.executable, ["-c", "pass"], env=dict(os.environ))
    await process.wait()

    sent = await terminate_process(
        process,
        use_process_group=False,
        terminate_grace_seconds=0.1,
    )

    assert sent == ()


def test_build_environment_prepends_dirs_in_order() -> None:
    env = build_environment(["./node_modules/.bin", "/opt/bin"], {"PATH": "/usr/bin"})

    assert env["PATH"] == os.pathsep.join(["./node_modules/.bin", "/opt/bin", "/usr/bin"])


def test_build_environment_handles_missing_path() -> None:
    env = build_environment(["bin"], {"HOME": "/home/me"})

    assert env == {"HOME": "/home/me", "PATH": "bin"}


def test_build_environment_copies_its_base() -> None:
    base = {"PATH": "/usr/bin"}

    env = build_environment(["bin"], base)
    env["EXTRA"] = "1"

    assert base == {"PATH": "/usr/bin"}
