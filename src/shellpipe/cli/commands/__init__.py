"""CLI command handlers."""

from .exec_cmd import cmd_exec
from .parse import cmd_parse
from .recipe import cmd_recipe
from .run import cmd_run

__all__ = [
    "cmd_exec",
    "cmd_parse",
    "cmd_recipe",
    "cmd_run",
]
