"""Pipe files through a command."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from shellpipe.cli.context import report_error
from shellpipe.errors import ShellpipeError
from shellpipe.pipeline import dest, pipe, read_contents, src
from shellpipe.runtime import CommandRunner

logger = logging.getLogger(__name__)


async def _run(args: argparse.Namespace) -> int:
    runner = CommandRunner(
        args.command_string,
        timeout_seconds=args.timeout,
        check=False if args.no_check else None,
    )
    source = src(args.files, base=args.base, buffer=not args.stream)

    count = 0
    if args.output is not None:
        async for _ in pipe(source, runner, dest(args.output)):
            count += 1
    else:
        async for file in pipe(source, runner):
            sys.stdout.buffer.write(await read_contents(file))
            sys.stdout.buffer.flush()
            count += 1

    await runner.wait_closed()
    logger.info("Piped %d file(s) through %s", count, runner.spec)
    return count


def cmd_run(args: argparse.Namespace) -> int:
    """Pipe each input file through the command."""
    try:
        count = asyncio.run(_run(args))
    except ShellpipeError as e:
        return report_error(e)

    if count == 0:
        print("Error: No input files matched", file=sys.stderr)
        return 1
    return 0
