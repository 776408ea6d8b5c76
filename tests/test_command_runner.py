"""Tests for piping pipeline files through child processes."""

from __future__ import annotations

import io
import os
import stat
import sys
from collections.abc import Mapping, Sequence
from pathlib import Path

import pytest

from shellpipe import run
from shellpipe.command import CommandSpec
from shellpipe.errors import (
    CommandFailedError,
    CommandTimeoutError,
    ParseError,
    SpawnError,
    UnsupportedFileShapeError,
)
from shellpipe.pipeline import collect, pipe, read_contents
from shellpipe.runtime import (
    CommandEvent,
    CommandRunner,
    EchoedOutputStream,
    ProcessOutputStream,
)
from shellpipe.runtime.process import ChildProcess
from shellpipe.runtime.timeout_policy import TimeoutPolicyRegistry
from shellpipe.vfs import BufferedContents, BytesStream, FileByteStream, PipelineFile


def _python(code: str) -> CommandSpec:
    return CommandSpec(program=sys.executable, arguments=("-c", code))


class RecordingSpawner:
    def __init__(self) -> None:
        self.calls: list[str] = []

    async def spawn(
        self,
        program: str,
        args: Sequence[str],
        *,
        env: Mapping[str, str],
        cwd: Path | None = None,
        new_session: bool = False,
    ) -> ChildProcess:
        self.calls.append(program)
        raise AssertionError(f"unexpected spawn of {program}")


@pytest.mark.anyio
async def test_buffered_file_is_piped_through_awk() -> None:
    runner = run('awk "NR % 2 == 0"')
    file = PipelineFile.from_bytes("numbers.txt", b"1\n2\n3\n4\n")

    result = await runner.transform(file)

    assert result is file
    assert result.is_buffer()
    assert result.contents == BufferedContents(b"2\n4\n")
    assert result.path == Path("numbers.txt")


@pytest.mark.anyio
async def test_streamed_file_is_forwarded_while_child_runs() -> None:
    runner = run('awk "NR % 2 == 0"')
    file = PipelineFile.from_stream("numbers.txt", BytesStream(b"1\n2\n3\n4\n"))

    result = await runner.transform(file)

    assert result.is_stream()
    stream = result.contents.stream
    assert isinstance(stream, ProcessOutputStream)
    assert stream.running

    assert await read_contents(result) == b"2\n4\n"
    await runner.wait_closed()
    assert not stream.running


@pytest.mark.anyio
async def test_execute_yields_one_file_and_echoes_prefixed_lines() -> None:
    output = io.StringIO()
    runner = run("echo Hello World")

    files = [file async for file in runner.execute(echo=True, output=output)]

    assert len(files) == 1
    (file,) = files
    assert file.path == Path("echo")
    assert file.is_stream()
    assert await read_contents(file) == b"Hello World\n"
    await runner.wait_closed()
    assert output.getvalue() == "[echo] Hello World\n"


@pytest.mark.anyio
async def test_execute_without_echo_writes_nothing() -> None:
    output = io.StringIO()
    runner = run("echo quiet")

    async for file in runner.execute(output=output):
        assert await read_contents(file) == b"quiet\n"
    await runner.wait_closed()

    assert output.getvalue() == ""


@pytest.mark.anyio
async def test_execute_gives_the_child_empty_input() -> None:
    runner = run("cat")

    async for file in runner.execute():
        assert await read_contents(file) == b""
    await runner.wait_closed()


@pytest.mark.anyio
async def test_null_file_passes_through_without_spawning() -> None:
    spawner = RecordingSpawner()
    runner = CommandRunner("cat", spawner=spawner)
    file = PipelineFile.null("empty.txt")

    result = await runner.transform(file)

    assert result is file
    assert result.is_null()
    assert spawner.calls == []


@pytest.mark.anyio
async def test_unknown_contents_shape_is_rejected() -> None:
    spawner = RecordingSpawner()
    runner = CommandRunner("cat", spawner=spawner)
    file = PipelineFile(path=Path("odd.txt"), contents=object())  # type: ignore[arg-type]

    with pytest.raises(UnsupportedFileShapeError) as exc_info:
        await runner.transform(file)

    assert exc_info.value.contents_type == "object"
    assert spawner.calls == []


def test_parse_errors_fail_before_any_spawn() -> None:
    with pytest.raises(ParseError):
        run('echo "unterminated')


@pytest.mark.anyio
async def test_missing_program_raises_spawn_error() -> None:
    runner = run("shellpipe-no-such-program --version")

    with pytest.raises(SpawnError) as exc_info:
        await runner.transform(PipelineFile.from_bytes("a.txt", b"data"))

    assert exc_info.value.program == "shellpipe-no-such-program"
    assert "shellpipe-no-such-program" in str(exc_info.value)


@pytest.mark.anyio
async def test_non_zero_exit_raises_when_checked() -> None:
    runner = CommandRunner(_python("import sys; sys.exit(3)"), check=True)

    with pytest.raises(CommandFailedError) as exc_info:
        await runner.transform(PipelineFile.from_bytes("a.txt", b""))

    assert exc_info.value.returncode == 3


@pytest.mark.anyio
async def test_non_zero_exit_is_ignored_when_unchecked() -> None:
    runner = CommandRunner(
        _python("import sys; sys.stdout.write('partial'); sys.exit(1)"),
        check=False,
    )

    result = await runner.transform(PipelineFile.from_bytes("a.txt", b""))

    assert result.contents == BufferedContents(b"partial")


@pytest.mark.anyio
async def test_streamed_failure_surfaces_at_end_of_output() -> None:
    runner = CommandRunner(_python("import sys; print('x'); sys.exit(2)"))
    file = await runner.transform(PipelineFile.from_stream("a.txt", BytesStream(b"")))

    with pytest.raises(CommandFailedError):
        await read_contents(file)
    with pytest.raises(CommandFailedError):
        await runner.wait_closed()


@pytest.mark.anyio
async def test_child_that_ignores_input_does_not_break_the_relay() -> None:
    runner = CommandRunner(_python("print('done')"))
    data = b"x" * (1024 * 1024)

    result = await runner.transform(PipelineFile.from_bytes("big.bin", data))

    assert result.contents == BufferedContents(b"done\n")


@pytest.mark.anyio
async def test_timeout_terminates_child() -> None:
    events: list[CommandEvent] = []
    runner = CommandRunner(
        _python("import time; time.sleep(30)"),
        timeout_seconds=0.2,
        policy_registry=TimeoutPolicyRegistry(terminate_grace_seconds=1.0),
        on_event=events.append,
    )

    with pytest.raises(CommandTimeoutError) as exc_info:
        await runner.transform(PipelineFile.from_bytes("a.txt", b""))

    assert exc_info.value.timeout_seconds == pytest.approx(0.2)
    assert [event.event_type for event in events] == ["spawn", "timeout", "terminate"]
    assert events[-1].detail == "sent SIGTERM"


@pytest.mark.anyio
async def test_lifecycle_events_are_emitted() -> None:
    events: list[CommandEvent] = []
    runner = CommandRunner("cat", on_event=events.append)

    await runner.transform(PipelineFile.from_bytes("a.txt", b"hi"))

    assert [event.event_type for event in events] == ["spawn", "exit"]
    assert events[1].detail == "status 0"
    assert events[0].command == "cat"
    assert events[0].pid is not None


@pytest.mark.anyio
async def test_stage_preserves_arrival_order() -> None:
    runner = run("cat")
    files = [
        PipelineFile.from_bytes(f"{index}.txt", f"file {index}\n".encode())
        for index in range(5)
    ]

    results = await collect(pipe(files, runner))

    assert [file.path for file in results] == [file.path for file in files]
    assert [await read_contents(file) for file in results] == [
        f"file {index}\n".encode() for index in range(5)
    ]


@pytest.mark.anyio
async def test_stages_chain_in_streaming_mode() -> None:
    first = run("cat")
    second = run("tr a-z A-Z")
    source = [PipelineFile.from_stream("a.txt", BytesStream(b"shout\n"))]

    (result,) = await collect(pipe(source, first, second))

    assert await read_contents(result) == b"SHOUT\n"
    await first.wait_closed()
    await second.wait_closed()


def test_environment_prepends_local_bin_dirs_without_touching_os_environ() -> None:
    before = dict(os.environ)

    runner = CommandRunner(
        "ls", local_bin_dirs=["/opt/tools/bin"], env={"PATH": "/usr/bin", "A": "1"}
    )

    assert runner.env["PATH"] == os.pathsep.join(["/opt/tools/bin", "/usr/bin"])
    assert runner.env["A"] == "1"
    assert dict(os.environ) == before


def test_default_local_bin_dir_comes_first_on_path() -> None:
    runner = CommandRunner("ls")

    assert runner.env["PATH"].split(os.pathsep)[0] == "./node_modules/.bin"


@pytest.mark.anyio
async def test_local_bin_dir_resolves_project_tools(tmp_path: Path) -> None:
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    tool = bin_dir / "shellpipe-local-tool"
    tool.write_text("#!/bin/sh\necho local tool\n", encoding="utf-8")
    tool.chmod(tool.stat().st_mode | stat.S_IEXEC)

    runner = CommandRunner("shellpipe-local-tool", local_bin_dirs=[bin_dir])

    async for file in runner.execute():
        assert await read_contents(file) == b"local tool\n"
    await runner.wait_closed()


@pytest.mark.anyio
async def test_execute_echoes_even_when_output_is_never_read() -> None:
    output = io.StringIO()
    runner = run("echo Hello World")

    async for file in runner.execute(echo=True, output=output):
        assert isinstance(file.contents.stream, EchoedOutputStream)
    await runner.wait_closed()

    assert output.getvalue() == "[echo] Hello World\n"


@pytest.mark.anyio
async def test_echoed_output_can_still_be_read_in_small_pieces() -> None:
    output = io.StringIO()
    runner = CommandRunner(_python("print('one'); print('two')"))

    async for file in runner.execute(echo=True, output=output):
        stream = file.contents.stream
        pieces: list[bytes] = []
        while chunk := await stream.read(3):
            pieces.append(chunk)
    await runner.wait_closed()

    assert b"".join(pieces) == b"one\ntwo\n"
    assert all(len(piece) <= 3 for piece in pieces)
    prefix = f"[{sys.executable}] "
    assert output.getvalue() == f"{prefix}one\n{prefix}two\n"


@pytest.mark.anyio
async def test_echoed_execute_failure_surfaces_from_wait_closed() -> None:
    output = io.StringIO()
    runner = CommandRunner(_python("import sys; print('bye'); sys.exit(4)"))

    async for _ in runner.execute(echo=True, output=output):
        pass

    with pytest.raises(CommandFailedError) as exc_info:
        await runner.wait_closed()
    assert exc_info.value.returncode == 4
    assert output.getvalue() == f"[{sys.executable}] bye\n"


@pytest.mark.anyio
async def test_streamed_source_is_closed_when_child_stops_reading(
    tmp_path: Path,
) -> None:
    path = tmp_path / "big.bin"
    path.write_bytes(b"x" * (2 * 1024 * 1024))
    source = FileByteStream(path)
    runner = CommandRunner(_python("pass"))

    result = await runner.transform(PipelineFile.from_stream(path, source))

    assert await read_contents(result) == b""
    await runner.wait_closed()
    assert source.closed
