"""One-shot command execution."""

from __future__ import annotations

import argparse
import asyncio
import sys

from shellpipe.cli.context import report_error
from shellpipe.errors import ShellpipeError
from shellpipe.pipeline import read_contents
from shellpipe.runtime import CommandRunner


async def _execute(command: str, *, echo: bool, timeout: float | None) -> bytes:
    runner = CommandRunner(command, timeout_seconds=timeout)
    output = b""
    async for file in runner.execute(echo=echo):
        output += await read_contents(file)
    await runner.wait_closed()
    return output


def cmd_exec(args: argparse.Namespace) -> int:
    """Run a command once with no input.

    Output is echoed line by line with a ``[program]`` prefix, or written
    raw with ``--quiet``.
    """
    try:
        output = asyncio.run(
            _execute(args.command_string, echo=not args.quiet, timeout=args.timeout)
        )
    except ShellpipeError as e:
        return report_error(e)

    if args.quiet:
        sys.stdout.buffer.write(output)
        sys.stdout.buffer.flush()
    return 0
