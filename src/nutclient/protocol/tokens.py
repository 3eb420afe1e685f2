from __future__ import annotations

from typing import List, Sequence

from nutclient.protocol.errors import ProtocolViolation

ERROR_MARKER = "ERR"

QUOTE = '"'
ESCAPE = "\\"


def quote(text: str) -> str:
    """Wrap text in quotes, escaping backslashes and quotes inside it."""
    escaped = text.replace(ESCAPE, ESCAPE * 2).replace(QUOTE, ESCAPE + QUOTE)
    return QUOTE + escaped + QUOTE


def _quoted_fields(tail: str, line: str) -> List[str]:
    # tail starts at the opening quote of the first field
    fields: List[str] = []
    i, n = 0, len(tail)
    while True:
        if i >= n or tail[i] != QUOTE:
            raise ProtocolViolation(f"Malformed quoted field in reply: {line!r}")
        i += 1
        chars: List[str] = []
        while True:
            if i >= n:
                raise ProtocolViolation(f"Unterminated quoted field in reply: {line!r}")
            c = tail[i]
            if c == ESCAPE and i + 1 < n:
                chars.append(tail[i + 1])
                i += 2
                continue
            if c == QUOTE:
                i += 1
                break
            chars.append(c)
            i += 1
        fields.append("".join(chars))
        if i == n:
            return fields
        if tail[i] != " ":
            raise ProtocolViolation(f"Malformed quoted field in reply: {line!r}")
        i += 1


def tokenize(line: str) -> List[str]:
    """Split one reply line into tokens.

    Grammar: word [word ...] ["quoted text" ["quoted text" ...]]
    - Words never contain spaces or quotes and are split on single spaces.
    - Everything from the first quote to the end of the line is a run of
      quoted fields separated by single spaces; the quotes are stripped,
      inner spaces preserved and ``\\"`` / ``\\\\`` unescaped.
    - The line must already be stripped of its newline.
    """
    q = line.find(QUOTE)
    if q < 0:
        s = line.strip()
        if not s:
            return []
        return s.split(" ")

    head = line[:q].strip()
    words = head.split(" ") if head else []
    return words + _quoted_fields(line[q:].rstrip(), line)


def is_error(tokens: Sequence[str]) -> bool:
    return bool(tokens) and tokens[0] == ERROR_MARKER
