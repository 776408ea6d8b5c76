"""Command-string parsing."""

from shellpipe.command.grammar import (
    ArgumentToken,
    BareArgument,
    CommandTree,
    DoubleQuotedArgument,
    ProgramNode,
    SingleQuotedArgument,
    parse_tree,
)
from shellpipe.command.command_spec import CommandSpec, parse_command, to_command_spec

__all__ = [
    "ArgumentToken",
    "BareArgument",
    "CommandSpec",
    "CommandTree",
    "DoubleQuotedArgument",
    "ProgramNode",
    "SingleQuotedArgument",
    "parse_command",
    "parse_tree",
    "to_command_spec",
]
