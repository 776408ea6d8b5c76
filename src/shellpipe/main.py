"""Main module for shellpipe."""

import logging
import os
import sys

from shellpipe.cli import run
from shellpipe.config.paths import get_paths


def setup_logging() -> None:
    """Configure logging to file for debugging."""
    paths = get_paths()
    paths.ensure_global_dirs()
    log_file = paths.debug_log

    # Set level from env var, default to INFO
    level = os.environ.get("SHELLPIPE_LOG_LEVEL", "INFO").upper()

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=[
            logging.FileHandler(log_file, mode="w"),
        ],
    )
    logging.info("Shellpipe starting, logging to %s", log_file)


def main() -> None:
    """Main entry point."""
    sys.exit(run(configure_logging=setup_logging))


if __name__ == "__main__":
    main()
