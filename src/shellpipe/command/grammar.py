"""Recursive-descent parser for command strings.

Grammar::

    command       := program SPACE* arglist
    program       := bare
    arglist       := (SPACE* argument)*
    argument      := quoted_double | quoted_single | bare
    bare          := (any char except SPACE, quote, line break)+
    quoted_double := '"' ( '\\' any | [^"\\] )* '"'
    quoted_single := "'" [^']* "'"
    SPACE         := ' ' | '\t'

Inside double quotes only ``\\"`` and ``\\\\`` are escapes; a backslash
before any other character is kept as written. Backslashes are literal in
bare and single-quoted words. A word uses exactly one quoting style, so a
quote may not appear inside a bare word and a closing quote must be followed
by whitespace or the end of the string. Nothing else has shell meaning:
``$``, ``~``, ``*``, ``|``, ``;``, ``&`` and redirections are plain
characters.

Other whitespace, such as form feed, vertical tab or a no-break space, does
not separate words. It is kept inside arguments but rejected inside the
program name.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TypeAlias

from shellpipe.errors import ParseError

SPACE = frozenset(" \t")
QUOTES = frozenset("\"'")
LINE_BREAKS = frozenset("\r\n")
DOUBLE_QUOTE_ESCAPES = frozenset('"\\')


@dataclass(frozen=True, slots=True)
class ProgramNode:
    """The program word at the head of a command."""

    text: str
    start: int
    end: int


@dataclass(frozen=True, slots=True)
class BareArgument:
    """Unquoted argument word."""

    text: str
    start: int
    end: int


@dataclass(frozen=True, slots=True)
class SingleQuotedArgument:
    """Argument between single quotes, taken verbatim."""

    text: str
    start: int
    end: int


@dataclass(frozen=True, slots=True)
class DoubleQuotedArgument:
    """Argument between double quotes.

    ``raw`` is the source text between the quotes; ``text`` has the
    escapes resolved.
    """

    raw: str
    text: str
    start: int
    end: int


ArgumentToken: TypeAlias = BareArgument | SingleQuotedArgument | DoubleQuotedArgument


@dataclass(frozen=True, slots=True)
class CommandTree:
    """Parse tree for one command string.

    ``separators[i]`` is the whitespace run that precedes ``arguments[i]``.
    """

    source: str
    program: ProgramNode
    separators: tuple[str, ...]
    arguments: tuple[ArgumentToken, ...]


class _Parser:
    def __init__(self, source: str) -> None:
        self.source = source
        self.pos = 0

    def error(self, reason: str, start: int, end: int | None = None) -> ParseError:
        fragment = self.source[start:] if end is None else self.source[start:end]
        return ParseError(self.source, start, fragment, reason)

    def at_end(self) -> bool:
        return self.pos >= len(self.source)

    def peek(self) -> str:
        return self.source[self.pos]

    def skip_space(self) -> str:
        start = self.pos
        while not self.at_end() and self.peek() in SPACE:
            self.pos += 1
        return self.source[start : self.pos]

    def parse(self) -> CommandTree:
        self.skip_space()
        if self.at_end() or self.source.isspace():
            raise self.error("Empty command", 0)

        program = self.parse_program()
        separators: list[str] = []
        arguments: list[ArgumentToken] = []
        while True:
            separator = self.skip_space()
            if self.at_end():
                break
            # Every word ends at SPACE or end of input, so separator is non-empty.
            separators.append(separator)
            arguments.append(self.parse_argument())

        return CommandTree(
            source=self.source,
            program=program,
            separators=tuple(separators),
            arguments=tuple(arguments),
        )

    def parse_program(self) -> ProgramNode:
        if self.peek() in QUOTES:
            raise self.error("Program name must be a bare word", self.pos, self.pos + 1)
        start = self.pos
        text = self.scan_bare()
        for offset, char in enumerate(text):
            if char.isspace():
                position = start + offset
                raise self.error(
                    "Whitespace inside program name", position, position + 1
                )
        return ProgramNode(text=text, start=start, end=self.pos)

    def parse_argument(self) -> ArgumentToken:
        char = self.peek()
        if char == '"':
            return self.parse_double_quoted()
        if char == "'":
            return self.parse_single_quoted()
        start = self.pos
        text = self.scan_bare()
        return BareArgument(text=text, start=start, end=self.pos)

    def scan_bare(self) -> str:
        start = self.pos
        while not self.at_end():
            char = self.peek()
            if char in SPACE:
                break
            if char in QUOTES:
                raise self.error("Unexpected quote inside word", start, self.pos + 1)
            if char in LINE_BREAKS:
                raise self.error("Line break outside quotes", self.pos, self.pos + 1)
            self.pos += 1
        return self.source[start : self.pos]

    def parse_single_quoted(self) -> SingleQuotedArgument:
        start = self.pos
        close = self.source.find("'", start + 1)
        if close == -1:
            raise self.error("Unterminated single quote", start)
        self.pos = close + 1
        self.expect_word_boundary(start)
        return SingleQuotedArgument(
            text=self.source[start + 1 : close], start=start, end=self.pos
        )

    def parse_double_quoted(self) -> DoubleQuotedArgument:
        start = self.pos
        source = self.source
        index = start + 1
        chars: list[str] = []
        while True:
            if index >= len(source):
                raise self.error("Unterminated double quote", start)
            char = source[index]
            if char == '"':
                break
            if char == "\\":
                if index + 1 >= len(source):
                    raise self.error("Unterminated double quote", start)
                escaped = source[index + 1]
                if escaped in DOUBLE_QUOTE_ESCAPES:
                    chars.append(escaped)
                else:
                    chars.append(char + escaped)
                index += 2
                continue
            chars.append(char)
            index += 1

        self.pos = index + 1
        self.expect_word_boundary(start)
        return DoubleQuotedArgument(
            raw=source[start + 1 : index],
            text="".join(chars),
            start=start,
            end=self.pos,
        )

    def expect_word_boundary(self, start: int) -> None:
        if self.at_end() or self.peek() in SPACE:
            return
        raise self.error(
            "Quoted argument must be followed by whitespace", start, self.pos + 1
        )


def parse_tree(command: str) -> CommandTree:
    """Parse *command* into a :class:`CommandTree`.

    Raises:
        ParseError: When the string does not match the grammar.
    """
    return _Parser(command).parse()
