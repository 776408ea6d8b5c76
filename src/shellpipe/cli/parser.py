"""Argument parser construction for the shellpipe CLI."""

from __future__ import annotations

import argparse
from collections.abc import Sequence
from pathlib import Path


def build_parser() -> argparse.ArgumentParser:
    """Build and return the top-level CLI parser."""
    parser = argparse.ArgumentParser(
        prog="shellpipe",
        description="shellpipe - pipe files through external commands",
    )
    parser.add_argument(
        "--workdir",
        "-w",
        type=Path,
        help="Directory to run in (default: current directory)",
    )

    # Subcommands
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Parse command (inspection)
    parse_parser = subparsers.add_parser(
        "parse",
        help="Show how a command string is split into program and arguments",
    )
    parse_parser.add_argument(
        "command_string",
        metavar="COMMAND",
        help="Command string to parse",
    )
    parse_parser.add_argument(
        "--json",
        action="store_true",
        help="Print JSON instead of a table",
    )

    # Exec command (one-shot)
    exec_parser = subparsers.add_parser(
        "exec",
        help="Run a command once with no input",
    )
    exec_parser.add_argument(
        "command_string",
        metavar="COMMAND",
        help="Command string to run",
    )
    exec_parser.add_argument(
        "--quiet",
        "-q",
        action="store_true",
        help="Write raw output without the [program] line prefix",
    )
    exec_parser.add_argument(
        "--timeout",
        type=float,
        help="Seconds before the command is terminated",
    )

    # Run command (transform files)
    run_parser = subparsers.add_parser(
        "run",
        help="Pipe files through a command",
    )
    run_parser.add_argument(
        "command_string",
        metavar="COMMAND",
        help="Command string to pipe each file through",
    )
    run_parser.add_argument(
        "files",
        nargs="+",
        help="Input files or glob patterns",
    )
    run_parser.add_argument(
        "-o",
        "--output",
        type=Path,
        help="Directory to write results to (default: concatenate to stdout)",
    )
    run_parser.add_argument(
        "--base",
        type=Path,
        help="Base directory for output paths (default: file name only)",
    )
    run_parser.add_argument(
        "--stream",
        action="store_true",
        help="Stream file contents instead of buffering them",
    )
    run_parser.add_argument(
        "--timeout",
        type=float,
        help="Seconds before each command is terminated",
    )
    run_parser.add_argument(
        "--no-check",
        action="store_true",
        help="Do not fail on a non-zero exit status",
    )

    # Recipe command
    recipe_parser = subparsers.add_parser(
        "recipe",
        help="Run a YAML pipeline recipe",
    )
    recipe_parser.add_argument(
        "file",
        type=Path,
        help="Path to recipe YAML file",
    )

    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments from argv (or sys.argv when omitted)."""
    parser = build_parser()
    if argv is None:
        return parser.parse_args()
    return parser.parse_args(list(argv))
