from __future__ import annotations

import enum
import logging
from typing import Any, Dict, FrozenSet, List, Optional, Sequence

from nutclient.client.transport import DEFAULT_PORT, SocketStream, Stream, StreamFactory
from nutclient.config import Settings
from nutclient.protocol.commands import Command, list_command
from nutclient.protocol.decoders import LAST_ONLY, WHOLE_LINE, LineReader, decode_list, decode_single, label_rows
from nutclient.protocol.errors import NutError, ProtocolError, ProtocolViolation, TransportError

log = logging.getLogger(__name__)

# NETVER from which PRIMARY replaced MASTER
PRIMARY_NETVER = 1.3

TRACKING_STATES: FrozenSet[str] = frozenset({"ON", "OFF"})
TRACKING_RESULTS: FrozenSet[str] = frozenset({"PENDING", "SUCCESS"})


class SessionState(enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    AUTHENTICATED = "authenticated"


def tracking_id(reply: str) -> Optional[str]:
    """Return the id from an ``OK TRACKING <id>`` reply, or None."""
    parts = reply.split(" ")
    if len(parts) == 3 and parts[0] == "OK" and parts[1] == "TRACKING":
        return parts[2]
    return None


class NutSession:
    """One connection to upsd, driving the request/response protocol.

    Not safe for concurrent use: every operation writes one command and
    reads its complete reply on the shared stream.
    """

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_PORT,
        username: str = "",
        password: str = "",
        timeout_s: float = 10.0,
        *,
        stream_factory: StreamFactory = SocketStream.open,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.timeout_s = timeout_s
        self._stream_factory = stream_factory
        self._stream: Optional[Stream] = None
        self._reader: Optional[LineReader] = None
        self.state = SessionState.DISCONNECTED

    @classmethod
    def from_settings(cls, s: Settings, **kwargs: Any) -> "NutSession":
        return cls(s.host, s.port, s.username, s.password, s.timeout_s, **kwargs)

    def __enter__(self) -> "NutSession":
        self.connect()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ---- lifecycle ----
    def connect(self, timeout_s: Optional[float] = None) -> None:
        """Open a fresh connection, replacing any existing one, and submit credentials."""
        self.close()
        t = float(timeout_s) if timeout_s is not None else float(self.timeout_s)
        self._stream = self._stream_factory(self.host, self.port, t)
        self._reader = LineReader(self._stream)
        self.state = SessionState.CONNECTED
        try:
            if self.username:
                self.set_username()
            if self.password:
                self.set_password()
        except Exception:
            self._teardown()
            raise
        if self.username and self.password:
            self.state = SessionState.AUTHENTICATED
        log.debug("session to %s:%s is %s", self.host, self.port, self.state.value)

    def close(self) -> None:
        """Log out if the server still answers, then always release the stream."""
        if self._stream is None:
            return
        try:
            self.disconnect()
        except NutError as e:
            log.debug("LOGOUT on close failed: %s", e)
        finally:
            self._teardown()

    def _teardown(self) -> None:
        stream, self._stream, self._reader = self._stream, None, None
        self.state = SessionState.DISCONNECTED
        if stream is not None:
            stream.close()

    # ---- plumbing ----
    def _write(self, cmd: Command) -> LineReader:
        """Send one command; returns the reader its reply arrives on."""
        if self._stream is None or self._reader is None:
            raise TransportError("Session is not connected")
        self._stream.write(cmd.frame())
        return self._reader

    def _single(self, verb: str, *args: object, selector: int = LAST_ONLY, context: Optional[Dict[str, Any]] = None) -> str:
        reader = self._write(Command.make(verb, *args))
        try:
            return decode_single(reader, selector)
        except ProtocolError as e:
            if not context:
                raise
            raise e.with_context(**context) from e

    def _list(
        self,
        kind: str,
        *args: object,
        keys: Sequence[str],
        context: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, str]]:
        cmd = list_command(kind, *args)
        reader = self._write(cmd)
        try:
            rows = decode_list(reader, cmd, two_fields=len(keys) == 2)
        except ProtocolError as e:
            if not context:
                raise
            raise e.with_context(**context) from e
        return label_rows(rows, keys)

    def _literal(self, accepted: FrozenSet[str], verb: str, *args: object) -> str:
        # Tracking replies are a bare keyword; failures still read "ERR <code>".
        line = self._write(Command.make(verb, *args)).read_line()
        if line in accepted:
            return line
        parts = line.split(" ")
        if len(parts) < 2:
            raise ProtocolViolation(f"Unexpected reply to {verb}: {line!r}")
        raise ProtocolError(parts[1])

    # ---- authentication ----
    def set_username(self) -> str:
        return self._single("USERNAME", self.username, context={"username": self.username})

    def set_password(self) -> str:
        return self._single("PASSWORD", self.password, context={"password": self.password})

    def login(self, ups_name: str) -> str:
        """LOGIN as upsmon does; needs an upsmon role in upsd.users."""
        return self._single("LOGIN", ups_name, context={"upsName": ups_name})

    def disconnect(self) -> str:
        """Send LOGOUT and close the stream. Returns ``OK Goodbye``."""
        try:
            return self._single("LOGOUT", selector=WHOLE_LINE)
        finally:
            self._teardown()

    def check_primary_privileges(self, ups_name: str) -> str:
        try:
            netver = float(self.get_protocol_version())
        except ValueError as e:
            raise ProtocolViolation(f"Unparseable NETVER reply: {e}") from e
        verb = "PRIMARY" if netver >= PRIMARY_NETVER else "MASTER"
        return self._single(verb, ups_name, selector=WHOLE_LINE, context={"upsName": ups_name})

    # ---- GET ----
    def get_num_logins(self, ups_name: str) -> str:
        return self._single("GET", "NUMLOGINS", ups_name, context={"upsName": ups_name})

    def get_ups_description(self, ups_name: str) -> str:
        return self._single("GET", "UPSDESC", ups_name, context={"upsName": ups_name})

    def get_var(self, ups_name: str, variable_name: str) -> str:
        return self._single(
            "GET", "VAR", ups_name, variable_name,
            context={"upsName": ups_name, "variableName": variable_name},
        )

    def get_var_type(self, ups_name: str, variable_name: str) -> str:
        # TYPE <ups> <var> <type> [<type> ...]
        return self._single(
            "GET", "TYPE", ups_name, variable_name,
            selector=3,
            context={"upsName": ups_name, "variableName": variable_name},
        )

    def get_var_description(self, ups_name: str, variable_name: str) -> str:
        return self._single(
            "GET", "DESC", ups_name, variable_name,
            context={"upsName": ups_name, "variableName": variable_name},
        )

    def get_command_description(self, ups_name: str, command_name: str) -> str:
        return self._single(
            "GET", "CMDDESC", ups_name, command_name,
            context={"upsName": ups_name, "commandName": command_name},
        )

    def get_tracking_status(self) -> str:
        return self._literal(TRACKING_STATES, "GET", "TRACKING")

    def get_tracking_result(self, tracking_id: str) -> str:
        return self._literal(TRACKING_RESULTS, "GET", "TRACKING", tracking_id)

    # ---- LIST ----
    def list_ups(self) -> List[Dict[str, str]]:
        return self._list("UPS", keys=("upsName", "upsDescription"))

    def list_vars(self, ups_name: str) -> List[Dict[str, str]]:
        return self._list("VAR", ups_name, keys=("variableName", "variableValue"), context={"upsName": ups_name})

    def list_rw_vars(self, ups_name: str) -> List[Dict[str, str]]:
        return self._list("RW", ups_name, keys=("variableName", "variableValue"), context={"upsName": ups_name})

    def list_commands(self, ups_name: str) -> List[Dict[str, str]]:
        return self._list("CMD", ups_name, keys=("commandName",), context={"upsName": ups_name})

    def list_enums(self, ups_name: str, variable_name: str) -> List[Dict[str, str]]:
        return self._list(
            "ENUM", ups_name, variable_name,
            keys=("variableEnum",),
            context={"upsName": ups_name, "variableName": variable_name},
        )

    def list_ranges(self, ups_name: str, variable_name: str) -> List[Dict[str, str]]:
        return self._list(
            "RANGE", ups_name, variable_name,
            keys=("variableMinValue", "variableMaxValue"),
            context={"upsName": ups_name, "variableName": variable_name},
        )

    def list_clients(self, ups_name: str) -> List[Dict[str, str]]:
        return self._list("CLIENT", ups_name, keys=("clientIPAddress",), context={"upsName": ups_name})

    # ---- SET / INSTCMD ----
    def set_var(self, ups_name: str, variable_name: str, value: Any) -> str:
        """Returns ``OK``, or ``OK TRACKING <id>`` when tracking is enabled."""
        return self._single(
            "SET", "VAR", ups_name, variable_name, value,
            selector=WHOLE_LINE,
            context={"upsName": ups_name, "variableName": variable_name, "value": value},
        )

    def enable_tracking(self) -> str:
        return self._single("SET", "TRACKING", "ON")

    def disable_tracking(self) -> str:
        return self._single("SET", "TRACKING", "OFF")

    def run_command(self, ups_name: str, command_name: str, command_param: Any = "") -> str:
        """Returns ``OK``, or ``OK TRACKING <id>`` when tracking is enabled."""
        args: List[object] = [ups_name, command_name]
        if command_param != "" and command_param is not None:
            args.append(command_param)
        return self._single(
            "INSTCMD", *args,
            selector=WHOLE_LINE,
            context={"upsName": ups_name, "commandName": command_name, "commandParam": command_param},
        )

    def fsd(self, ups_name: str) -> str:
        """Set forced shutdown on the UPS; needs upsmon primary or the FSD action."""
        return self._single("FSD", ups_name, selector=WHOLE_LINE, context={"upsName": ups_name})

    # ---- server ----
    def start_tls(self) -> str:
        return self._single("STARTTLS", selector=WHOLE_LINE)

    def help(self) -> str:
        return self._single("HELP", selector=WHOLE_LINE)

    def get_server_version(self) -> str:
        return self._single("VER", selector=WHOLE_LINE)

    def get_protocol_version(self) -> str:
        return self._single("NETVER", selector=WHOLE_LINE)
