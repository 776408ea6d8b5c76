"""CLI orchestration and command routing."""

from __future__ import annotations

import argparse
import logging
import os
from collections.abc import Callable, Sequence
from pathlib import Path

from shellpipe.cli.commands import cmd_exec, cmd_parse, cmd_recipe, cmd_run
from shellpipe.cli.parser import build_parser, parse_args
from shellpipe.config.paths import get_paths, reset_paths
from shellpipe.config.settings import settings
from shellpipe.runtime.timeout_policy import reset_timeout_policy_registry

logger = logging.getLogger(__name__)


def dispatch(args: argparse.Namespace) -> int:
    """Route parsed args to the correct command handler."""
    command_handlers: dict[str, Callable[[argparse.Namespace], int]] = {
        "parse": cmd_parse,
        "exec": cmd_exec,
        "run": cmd_run,
        "recipe": cmd_recipe,
    }

    handler = command_handlers.get(args.command) if args.command else None
    if handler is None:
        build_parser().print_help()
        return 1

    return handler(args)


def _use_workspace(workdir: Path) -> None:
    """Point paths, settings and timeout policies at *workdir*."""
    reset_paths()
    get_paths(workdir)
    settings.reload()
    reset_timeout_policy_registry()


def run(
    argv: Sequence[str] | None = None,
    *,
    configure_logging: Callable[[], None] | None = None,
) -> int:
    """Parse args, apply shared CLI setup, and execute command."""
    args = parse_args(argv)

    if args.workdir:
        workdir = args.workdir.resolve()
        workdir.mkdir(parents=True, exist_ok=True)
        os.chdir(workdir)
        _use_workspace(workdir)

    if configure_logging is not None:
        configure_logging()

    logger.info("Working directory: %s", Path.cwd())
    return dispatch(args)
