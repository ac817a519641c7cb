"""Command-line parser for the shell: words, redirections, pipes, lists, background jobs."""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union

from .constants import OpenMode

MAXARGS = 10

WHITESPACE = " \t\r\n\v"
SYMBOLS = "<|>&;()"

WORD = "a"
APPEND = "+"
END = ""


class ShellSyntaxError(ValueError):
    """Raised when a command line cannot be parsed."""


@dataclass
class ExecCmd:
    """Run a program with arguments."""

    argv: List[str] = field(default_factory=list)


@dataclass
class RedirCmd:
    """Run ``cmd`` with descriptor ``fd`` reopened on ``file``."""

    cmd: "Command"
    file: str
    mode: OpenMode
    fd: int


@dataclass
class PipeCmd:
    """Connect the output of ``left`` to the input of ``right``."""

    left: "Command"
    right: "Command"


@dataclass
class ListCmd:
    """Run ``left``, wait for it, then run ``right``."""

    left: "Command"
    right: "Command"


@dataclass
class BackCmd:
    """Run ``cmd`` without waiting for it."""

    cmd: "Command"


Command = Union[ExecCmd, RedirCmd, PipeCmd, ListCmd, BackCmd]


class _Parser:
    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    def _skip_space(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos] in WHITESPACE:
            self.pos += 1

    def at_end(self) -> bool:
        self._skip_space()
        return self.pos >= len(self.text)

    def peek(self, toks: str) -> bool:
        self._skip_space()
        return self.pos < len(self.text) and self.text[self.pos] in toks

    def gettoken(self) -> Tuple[str, str]:
        self._skip_space()
        text = self.text
        start = self.pos
        if self.pos >= len(text):
            return END, ""
        c = text[self.pos]
        if c in "|();&<":
            kind = c
            self.pos += 1
        elif c == ">":
            kind = ">"
            self.pos += 1
            if self.pos < len(text) and text[self.pos] == ">":
                kind = APPEND
                self.pos += 1
        else:
            kind = WORD
            while (
                self.pos < len(text)
                and text[self.pos] not in WHITESPACE
                and text[self.pos] not in SYMBOLS
            ):
                self.pos += 1
        token = text[start:self.pos]
        self._skip_space()
        return kind, token

    def parse_line(self) -> Command:
        cmd = self.parse_pipe()
        while self.peek("&"):
            self.gettoken()
            cmd = BackCmd(cmd)
        if self.peek(";"):
            self.gettoken()
            cmd = ListCmd(cmd, self.parse_line())
        return cmd

    def parse_pipe(self) -> Command:
        cmd = self.parse_exec()
        if self.peek("|"):
            self.gettoken()
            cmd = PipeCmd(cmd, self.parse_pipe())
        return cmd

    def parse_redirs(self, cmd: Command) -> Command:
        while self.peek("<>"):
            kind, _ = self.gettoken()
            file_kind, file = self.gettoken()
            if file_kind != WORD:
                raise ShellSyntaxError("missing file for redirection")
            if kind == "<":
                cmd = RedirCmd(cmd, file, OpenMode.RDONLY, 0)
            else:
                cmd = RedirCmd(cmd, file, OpenMode.WRONLY | OpenMode.CREATE, 1)
        return cmd

    def parse_block(self) -> Command:
        if not self.peek("("):
            raise ShellSyntaxError("parseblock")
        self.gettoken()
        cmd = self.parse_line()
        if not self.peek(")"):
            raise ShellSyntaxError("syntax - missing )")
        self.gettoken()
        return self.parse_redirs(cmd)

    def parse_exec(self) -> Command:
        if self.peek("("):
            return self.parse_block()
        exec_cmd = ExecCmd()
        ret: Command = self.parse_redirs(exec_cmd)
        while not self.peek("|)&;"):
            kind, word = self.gettoken()
            if kind == END:
                break
            if kind != WORD:
                raise ShellSyntaxError("syntax")
            exec_cmd.argv.append(word)
            if len(exec_cmd.argv) >= MAXARGS:
                raise ShellSyntaxError("too many args")
            ret = self.parse_redirs(ret)
        return ret


def _truncate(s: str) -> str:
    end = s.find("\0")
    return s if end < 0 else s[:end]


def tokenize(s: str) -> List[Tuple[str, str]]:
    """Split ``s`` into (kind, text) tokens.

    The kind is the symbol itself for ``| ( ) ; & < >``, ``"+"`` for ``>>``
    and ``"a"`` for a word.
    """
    parser = _Parser(_truncate(s))
    tokens = []
    while True:
        kind, text = parser.gettoken()
        if kind == END:
            return tokens
        tokens.append((kind, text))


def parse_cmd(s: str) -> Command:
    """Parse one command line into a command tree."""
    parser = _Parser(_truncate(s))
    cmd = parser.parse_line()
    if not parser.at_end():
        raise ShellSyntaxError(f"leftovers: {parser.text[parser.pos:]}")
    return cmd