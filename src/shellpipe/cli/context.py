"""Shared helpers for CLI command modules."""

from __future__ import annotations

import logging
import sys

from shellpipe.errors import ShellpipeError

logger = logging.getLogger(__name__)


def report_error(error: ShellpipeError) -> int:
    """Print a user-facing error (and hint) to stderr and return exit code 1."""
    logger.error("Command failed: %s", error, exc_info=error)
    print(f"Error: {error}", file=sys.stderr)
    if error.hint:
        print(f"  {error.hint}", file=sys.stderr)
    return 1
