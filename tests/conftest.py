from __future__ import annotations

from typing import List, Optional, Sequence, Union

import pytest


class ScriptedStream:
    """In-memory stream: serves canned reply chunks, records writes."""

    def __init__(self, chunks: Sequence[Union[bytes, Exception]] = ()) -> None:
        self.chunks: List[Union[bytes, Exception]] = list(chunks)
        self.written: List[bytes] = []
        self.closed = False
        self.reads = 0

    def feed(self, data: bytes) -> None:
        self.chunks.append(data)

    def read(self, size: int) -> bytes:
        self.reads += 1
        if not self.chunks:
            return b""
        nxt = self.chunks.pop(0)
        if isinstance(nxt, Exception):
            raise nxt
        if len(nxt) > size:
            self.chunks.insert(0, nxt[size:])
            nxt = nxt[:size]
        return nxt

    def write(self, data: bytes) -> None:
        self.written.append(data)

    def close(self) -> None:
        self.closed = True

    @property
    def lines(self) -> List[str]:
        return [w.decode("utf-8").rstrip("\n") for w in self.written]


class StreamFactory:
    """Hands out one ScriptedStream per connect() and remembers them all."""

    def __init__(self) -> None:
        self.streams: List[ScriptedStream] = []
        self.pending: List[bytes] = []
        self.fail: Optional[Exception] = None

    def script(self, *replies: bytes) -> None:
        self.pending.extend(replies)

    def __call__(self, host: str, port: int, timeout_s: float) -> ScriptedStream:
        if self.fail is not None:
            raise self.fail
        stream = ScriptedStream(self.pending)
        self.pending = []
        self.streams.append(stream)
        return stream

    @property
    def current(self) -> ScriptedStream:
        return self.streams[-1]


@pytest.fixture
def stream_factory() -> StreamFactory:
    return StreamFactory()
