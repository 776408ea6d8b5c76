from __future__ import annotations

from pathlib import Path

import pytest

from shellpipe.cli.parser import parse_args


def test_parse_args_without_command() -> None:
    args = parse_args([])
    assert args.command is None
    assert args.workdir is None


def test_parse_args_parse_json() -> None:
    args = parse_args(["parse", "ls -la", "--json"])
    assert args.command == "parse"
    assert args.command_string == "ls -la"
    assert args.json is True


def test_parse_args_exec_quiet_with_timeout() -> None:
    args = parse_args(["-w", "work", "exec", "echo hi", "-q", "--timeout", "2.5"])
    assert args.command == "exec"
    assert args.workdir == Path("work")
    assert args.quiet is True
    assert args.timeout == 2.5


def test_parse_args_run_options() -> None:
    args = parse_args(
        ["run", "sort -n", "a.txt", "b/*.txt", "-o", "out", "--base", "b", "--stream"]
    )
    assert args.command == "run"
    assert args.command_string == "sort -n"
    assert args.files == ["a.txt", "b/*.txt"]
    assert args.output == Path("out")
    assert args.base == Path("b")
    assert args.stream is True
    assert args.no_check is False
    assert args.timeout is None


def test_parse_args_run_requires_files() -> None:
    with pytest.raises(SystemExit):
        _ = parse_args(["run", "cat"])


def test_parse_args_recipe() -> None:
    args = parse_args(["recipe", "build.yaml"])
    assert args.command == "recipe"
    assert args.file == Path("build.yaml")
