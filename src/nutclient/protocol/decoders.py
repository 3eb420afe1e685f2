from __future__ import annotations

from typing import Dict, List, Protocol, Sequence, Tuple

from nutclient.protocol.commands import Command, list_sentinels
from nutclient.protocol.errors import ProtocolError, ProtocolViolation, ShapeMismatch, TransportError
from nutclient.protocol.tokens import is_error, tokenize

# Consecutive empty/timed-out reads tolerated before the stream is declared dead.
MAX_READ_FAILURES = 2

READ_CHUNK = 4096

# Field selectors for decode_single
LAST_ONLY = -1
WHOLE_LINE = 0


class ByteSource(Protocol):
    def read(self, size: int) -> bytes: ...


class LineReader:
    """Newline-framed reader over a byte stream.

    Bytes received past a newline are kept for the next call, so a LIST
    reply arriving in one chunk is split correctly.
    """

    def __init__(self, stream: ByteSource, *, max_failures: int = MAX_READ_FAILURES) -> None:
        self._stream = stream
        self._max_failures = max_failures
        self._buf = b""

    def read_line(self) -> str:
        failures = 0
        while b"\n" not in self._buf:
            try:
                chunk = self._stream.read(READ_CHUNK)
            except TimeoutError:
                chunk = b""
            except OSError as e:
                raise TransportError(f"Unable to read from upsd: {e}") from e
            if not chunk:
                failures += 1
                if failures > self._max_failures:
                    raise TransportError("Unable to read from upsd: no data after retries")
                continue
            failures = 0
            self._buf += chunk

        raw, self._buf = self._buf.split(b"\n", 1)
        if raw.endswith(b"\r"):
            raw = raw[:-1]
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ProtocolViolation(f"Reply line is not valid UTF-8: {raw!r}") from e


def _raise_if_error(tokens: Sequence[str]) -> None:
    if not is_error(tokens):
        return
    if len(tokens) < 2:
        raise ProtocolViolation("ERR reply without an error code")
    # ERR <code> [<extra>]: only the code is significant
    raise ProtocolError(tokens[1])


def decode_single(reader: LineReader, selector: int = LAST_ONLY) -> str:
    """Consume exactly one reply line and apply the field selector.

    selector == LAST_ONLY -> last token
    selector == 0         -> whole line, tokens rejoined with single spaces
    selector == k > 0     -> tokens from index k onward, rejoined
    """
    if selector < LAST_ONLY:
        raise ValueError(f"Invalid field selector: {selector}")
    tokens = tokenize(reader.read_line())
    if not tokens:
        raise ProtocolViolation("Empty reply line")
    _raise_if_error(tokens)
    if selector == LAST_ONLY:
        return tokens[-1]
    if selector >= len(tokens):
        raise ProtocolViolation(f"Reply has {len(tokens)} tokens, expected more than {selector}")
    return " ".join(tokens[selector:])


def decode_list(reader: LineReader, command: Command, *, two_fields: bool = False) -> List[Tuple[str, ...]]:
    """Decode a ``BEGIN LIST ...`` / ``END LIST ...`` block.

    Each row keeps its last token, or its last two when ``two_fields`` is set.
    An ERR line before or inside the block aborts the decode.
    """
    begin, end = list_sentinels(command)
    width = 2 if two_fields else 1

    while True:
        line = reader.read_line()
        if line == begin:
            break
        _raise_if_error(tokenize(line))

    rows: List[Tuple[str, ...]] = []
    while True:
        line = reader.read_line()
        if line == end:
            return rows
        tokens = tokenize(line)
        _raise_if_error(tokens)
        if len(tokens) < width:
            raise ProtocolViolation(f"List row has {len(tokens)} field(s), expected at least {width}: {line!r}")
        rows.append(tuple(tokens[-width:]))


def label_rows(rows: Sequence[Sequence[str]], keys: Sequence[str]) -> List[Dict[str, str]]:
    out: List[Dict[str, str]] = []
    for row in rows:
        if len(row) != len(keys):
            raise ShapeMismatch(f"Row {list(row)} does not match labels {list(keys)}")
        out.append(dict(zip(keys, row)))
    return out
