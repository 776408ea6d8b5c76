"""Parse command for inspecting command strings."""

from __future__ import annotations

import argparse
import json

from rich.console import Console
from rich.table import Table
from rich.text import Text

from shellpipe.cli.context import report_error
from shellpipe.command import (
    ArgumentToken,
    BareArgument,
    DoubleQuotedArgument,
    parse_tree,
    to_command_spec,
)
from shellpipe.errors import ParseError


def _kind(token: ArgumentToken) -> str:
    if isinstance(token, BareArgument):
        return "bare"
    if isinstance(token, DoubleQuotedArgument):
        return "double-quoted"
    return "single-quoted"


def cmd_parse(args: argparse.Namespace) -> int:
    """Show the program and arguments a command string parses into."""
    try:
        tree = parse_tree(args.command_string)
    except ParseError as e:
        return report_error(e)

    spec = to_command_spec(tree)
    if args.json:
        print(json.dumps({"program": spec.program, "arguments": list(spec.arguments)}))
        return 0

    table = Table(title=Text(spec.program))
    table.add_column("#", justify="right")
    table.add_column("Kind")
    table.add_column("Literal")
    for index, (token, literal) in enumerate(
        zip(tree.arguments, spec.arguments, strict=True), start=1
    ):
        table.add_row(str(index), _kind(token), Text(repr(literal)))
    Console().print(table)
    return 0
