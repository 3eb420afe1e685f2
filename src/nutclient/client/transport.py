from __future__ import annotations

import logging
import socket
from typing import Callable, Optional, Protocol

from nutclient.protocol.errors import TransportError

log = logging.getLogger(__name__)

DEFAULT_PORT = 3493


class Stream(Protocol):
    def read(self, size: int) -> bytes: ...

    def write(self, data: bytes) -> None: ...

    def close(self) -> None: ...


StreamFactory = Callable[[str, int, float], Stream]


class SocketStream:
    """Blocking TCP stream; the connect timeout doubles as the read timeout."""

    def __init__(self, sock: socket.socket) -> None:
        self._sock: Optional[socket.socket] = sock

    @classmethod
    def open(cls, host: str, port: int, timeout_s: float) -> "SocketStream":
        try:
            sock = socket.create_connection((host, port), timeout=timeout_s)
        except OSError as e:
            raise TransportError(f"Unable to open connection to {host}:{port}: {e}") from e
        sock.settimeout(timeout_s)
        log.debug("connected to %s:%s", host, port)
        return cls(sock)

    def read(self, size: int) -> bytes:
        if self._sock is None:
            return b""
        return self._sock.recv(size)

    def write(self, data: bytes) -> None:
        if self._sock is None:
            raise TransportError("Unable to write to a closed connection")
        try:
            self._sock.sendall(data)
        except OSError as e:
            raise TransportError(f"Unable to write to upsd: {e}") from e

    def close(self) -> None:
        sock, self._sock = self._sock, None
        if sock is None:
            return
        try:
            sock.close()
        except OSError as e:
            raise TransportError(f"Unable to close connection: {e}") from e
