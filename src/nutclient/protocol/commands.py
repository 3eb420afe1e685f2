from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from nutclient.protocol.tokens import quote


def _quote_arg(arg: str) -> str:
    if arg == "":
        raise ValueError("Empty command argument")
    if "\n" in arg or "\r" in arg:
        raise ValueError(f"Command argument contains a line break: {arg!r}")
    if any(c.isspace() for c in arg) or '"' in arg:
        return quote(arg)
    return arg


@dataclass(frozen=True)
class Command:
    """One request line: VERB [arg1] [arg2] ...

    Arguments holding whitespace are sent quoted, as upsd expects for
    values such as ``SET VAR ups ups.id "Server room"``.
    """

    verb: str
    args: Tuple[str, ...] = ()

    @staticmethod
    def make(verb: str, *args: object) -> "Command":
        return Command(verb, tuple(str(a) for a in args))

    @property
    def line(self) -> str:
        return " ".join([self.verb, *(_quote_arg(a) for a in self.args)])

    def frame(self) -> bytes:
        return (self.line + "\n").encode("utf-8")


def list_command(kind: str, *args: object) -> Command:
    return Command.make("LIST", kind, *args)


def list_sentinels(command: Command) -> Tuple[str, str]:
    """Return the (begin, end) lines upsd echoes around a LIST reply."""
    return f"BEGIN {command.line}", f"END {command.line}"
