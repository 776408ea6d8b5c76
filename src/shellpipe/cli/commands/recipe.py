"""Run a YAML pipeline recipe."""

from __future__ import annotations

import argparse
import asyncio
import sys

from shellpipe.cli.context import report_error
from shellpipe.errors import ShellpipeError
from shellpipe.pipeline import dest, pipe, read_contents, src
from shellpipe.recipe import Recipe, load_recipe
from shellpipe.runtime import CommandRunner


async def run_recipe(recipe: Recipe) -> int:
    """Execute *recipe* and return the number of files that came out of it."""
    runners = [
        CommandRunner(
            stage.command,
            timeout_seconds=stage.timeout_seconds,
            check=stage.check,
        )
        for stage in recipe.stages
    ]
    stages = list(runners)
    if recipe.dest is not None:
        stages.append(dest(recipe.dest))

    count = 0
    source = src(recipe.sources, base=recipe.base, buffer=recipe.buffer)
    async for file in pipe(source, *stages):
        if recipe.dest is None:
            sys.stdout.buffer.write(await read_contents(file))
            sys.stdout.buffer.flush()
        count += 1

    for runner in runners:
        await runner.wait_closed()
    return count


def cmd_recipe(args: argparse.Namespace) -> int:
    """Load a recipe file and run it."""
    if not args.file.exists():
        print(f"Error: File not found: {args.file}", file=sys.stderr)
        return 1

    try:
        recipe = load_recipe(args.file)
        count = asyncio.run(run_recipe(recipe))
    except ShellpipeError as e:
        return report_error(e)

    print(f"Processed {count} file(s)", file=sys.stderr)
    return 0
