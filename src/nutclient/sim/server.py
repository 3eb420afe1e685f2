from __future__ import annotations

import logging
import socket
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple, Union

from nutclient.protocol import errors as E
from nutclient.protocol.errors import ProtocolViolation
from nutclient.protocol.tokens import quote, tokenize
from nutclient.sim.config_schema import SimConfig, UserSpec
from nutclient.sim.ups_model import UpsModel

log = logging.getLogger(__name__)

HELP_LINE = "Commands: HELP VER GET LIST SET INSTCMD LOGIN LOGOUT USERNAME PASSWORD STARTTLS"
GOODBYE = "OK Goodbye"

Reply = List[str]


@dataclass
class ConnState:
    addr: str
    username: str = ""
    password: str = ""
    login_ups: Optional[str] = None
    tracking: bool = False
    closing: bool = False


def err(code: str) -> Reply:
    return [f"ERR {code}"]


class UpsdSimulator:
    """Multi-client TCP upsd simulator (thread-per-connection)."""

    def __init__(self, host: str, port: int, config: SimConfig) -> None:
        self.host = host
        self.port = port
        self.model = UpsModel(config)
        self.ready = threading.Event()
        self._stop = threading.Event()
        self._sock: Optional[socket.socket] = None
        self._handlers: Dict[str, Callable[[ConnState, List[str]], Reply]] = {
            "VER": self._ver,
            "NETVER": self._netver,
            "HELP": self._help,
            "USERNAME": self._username,
            "PASSWORD": self._password,
            "LOGIN": self._login,
            "LOGOUT": self._logout,
            "GET": self._get,
            "LIST": self._list,
            "SET": self._set,
            "INSTCMD": self._instcmd,
            "PRIMARY": self._primary,
            "MASTER": self._primary,
            "FSD": self._fsd,
            "STARTTLS": self._starttls,
        }

    @property
    def config(self) -> SimConfig:
        return self.model.config

    def stop(self) -> None:
        self._stop.set()
        if self._sock is not None:
            try:
                self._sock.close()
            except OSError:
                pass

    # ---- connection handling ----
    def _handle(self, conn: socket.socket, addr: Tuple[str, int]) -> None:
        state = ConnState(addr=addr[0])
        with conn:
            buf = b""
            while not self._stop.is_set() and not state.closing:
                try:
                    chunk = conn.recv(4096)
                except OSError:
                    break
                if not chunk:
                    break
                buf += chunk
                while b"\n" in buf and not state.closing:
                    line, buf = buf.split(b"\n", 1)
                    if not line.strip():
                        continue
                    reply = self._dispatch(state, line)
                    try:
                        conn.sendall("".join(r + "\n" for r in reply).encode("utf-8"))
                    except OSError:
                        state.closing = True
        if state.login_ups is not None:
            self.model.drop_login(state.login_ups)
        log.debug("client %s disconnected", addr[0])

    def _dispatch(self, state: ConnState, line: bytes) -> Reply:
        try:
            tokens = tokenize(line.decode("utf-8").rstrip("\r"))
        except (UnicodeDecodeError, ProtocolViolation):
            return err(E.E_INVALID_ARGUMENT)
        if not tokens:
            return err(E.E_UNKNOWN_COMMAND)
        handler = self._handlers.get(tokens[0].upper())
        if handler is None:
            return err(E.E_UNKNOWN_COMMAND)
        return handler(state, tokens[1:])

    # ---- helpers ----
    def _authorize(self, state: ConnState) -> Union[UserSpec, Reply]:
        if not state.username:
            return err(E.E_USERNAME_REQUIRED)
        if not state.password:
            return err(E.E_PASSWORD_REQUIRED)
        user = self.config.users.get(state.username)
        if user is None or user.password != state.password:
            return err(E.E_ACCESS_DENIED)
        return user

    def _check_ups(self, ups_name: str) -> Optional[Reply]:
        if self.model.get(ups_name) is None:
            return err(E.E_UNKNOWN_UPS)
        return None

    def _check_var(self, ups_name: str, var_name: str, *, fresh: bool = False) -> Optional[Reply]:
        bad = self._check_ups(ups_name)
        if bad:
            return bad
        if self.model.var_spec(ups_name, var_name) is None:
            return err(E.E_VAR_NOT_SUPPORTED)
        if fresh and self.model.get(ups_name).spec.stale:  # type: ignore[union-attr]
            return err(E.E_DATA_STALE)
        return None

    def _ok(self, state: ConnState) -> Reply:
        if state.tracking:
            return [f"OK TRACKING {self.model.track()}"]
        return ["OK"]

    # ---- server-level commands ----
    def _ver(self, state: ConnState, args: List[str]) -> Reply:
        return [f"Network UPS Tools upsd {self.config.server.version} - https://www.networkupstools.org/"]

    def _netver(self, state: ConnState, args: List[str]) -> Reply:
        return [self.config.server.netver]

    def _help(self, state: ConnState, args: List[str]) -> Reply:
        return [HELP_LINE]

    def _starttls(self, state: ConnState, args: List[str]) -> Reply:
        return err(E.E_FEATURE_NOT_CONFIGURED)

    def _username(self, state: ConnState, args: List[str]) -> Reply:
        if len(args) != 1:
            return err(E.E_INVALID_ARGUMENT)
        if state.username:
            return err(E.E_ALREADY_SET_USERNAME)
        state.username = args[0]
        return ["OK"]

    def _password(self, state: ConnState, args: List[str]) -> Reply:
        if len(args) != 1:
            return err(E.E_INVALID_ARGUMENT)
        if state.password:
            return err(E.E_ALREADY_SET_PASSWORD)
        state.password = args[0]
        return ["OK"]

    def _login(self, state: ConnState, args: List[str]) -> Reply:
        if len(args) != 1:
            return err(E.E_INVALID_ARGUMENT)
        user = self._authorize(state)
        if isinstance(user, list):
            return user
        if user.upsmon is None:
            return err(E.E_ACCESS_DENIED)
        bad = self._check_ups(args[0])
        if bad:
            return bad
        if state.login_ups is not None:
            return err(E.E_ALREADY_LOGGED_IN)
        state.login_ups = args[0]
        self.model.add_login(args[0])
        return ["OK"]

    def _logout(self, state: ConnState, args: List[str]) -> Reply:
        state.closing = True
        return [GOODBYE]

    def _primary(self, state: ConnState, args: List[str]) -> Reply:
        if len(args) != 1:
            return err(E.E_INVALID_ARGUMENT)
        user = self._authorize(state)
        if isinstance(user, list):
            return user
        bad = self._check_ups(args[0])
        if bad:
            return bad
        if user.upsmon != "primary":
            return err(E.E_ACCESS_DENIED)
        return ["OK PRIMARY-GRANTED"]

    def _fsd(self, state: ConnState, args: List[str]) -> Reply:
        if len(args) != 1:
            return err(E.E_INVALID_ARGUMENT)
        user = self._authorize(state)
        if isinstance(user, list):
            return user
        bad = self._check_ups(args[0])
        if bad:
            return bad
        if user.upsmon != "primary" and "FSD" not in user.actions:
            return err(E.E_ACCESS_DENIED)
        self.model.set_fsd(args[0])
        return ["OK FSD-SET"]

    # ---- GET ----
    def _get(self, state: ConnState, args: List[str]) -> Reply:
        if not args:
            return err(E.E_INVALID_ARGUMENT)
        what, rest = args[0].upper(), args[1:]

        if what == "TRACKING":
            if not rest:
                return ["ON" if state.tracking else "OFF"]
            result = self.model.tracking_result(rest[0])
            if result is None:
                return err(E.E_INVALID_ARGUMENT)
            return [result]

        if what in {"NUMLOGINS", "UPSDESC"}:
            if len(rest) != 1:
                return err(E.E_INVALID_ARGUMENT)
            ups_name = rest[0]
            bad = self._check_ups(ups_name)
            if bad:
                return bad
            if what == "NUMLOGINS":
                return [f"NUMLOGINS {ups_name} {self.model.num_logins(ups_name)}"]
            return [f"UPSDESC {ups_name} {quote(self.model.get(ups_name).spec.description)}"]  # type: ignore[union-attr]

        if what in {"VAR", "TYPE", "DESC"}:
            if len(rest) != 2:
                return err(E.E_INVALID_ARGUMENT)
            ups_name, var_name = rest
            bad = self._check_var(ups_name, var_name, fresh=(what == "VAR"))
            if bad:
                return bad
            spec = self.model.var_spec(ups_name, var_name)
            assert spec is not None
            if what == "VAR":
                return [f"VAR {ups_name} {var_name} {quote(self.model.value(ups_name, var_name))}"]
            if what == "DESC":
                return [f"DESC {ups_name} {var_name} {quote(spec.description)}"]
            types = (["RW"] if spec.writable else []) + list(spec.types)
            return [f"TYPE {ups_name} {var_name} {' '.join(types)}"]

        if what == "CMDDESC":
            if len(rest) != 2:
                return err(E.E_INVALID_ARGUMENT)
            ups_name, cmd_name = rest
            bad = self._check_ups(ups_name)
            if bad:
                return bad
            desc = self.model.get(ups_name).spec.commands.get(cmd_name)  # type: ignore[union-attr]
            if desc is None:
                return err(E.E_CMD_NOT_SUPPORTED)
            return [f"CMDDESC {ups_name} {cmd_name} {quote(desc)}"]

        return err(E.E_INVALID_ARGUMENT)

    # ---- LIST ----
    def _list(self, state: ConnState, args: List[str]) -> Reply:
        if not args:
            return err(E.E_INVALID_ARGUMENT)
        kind, rest = args[0].upper(), args[1:]
        echo = " ".join(["LIST", kind, *rest])

        rows: Optional[List[str]] = None
        if kind == "UPS":
            if rest:
                return err(E.E_INVALID_ARGUMENT)
            rows = [f"UPS {name} {quote(self.model.get(name).spec.description)}" for name in self.model.names()]  # type: ignore[union-attr]
        elif kind in {"VAR", "RW", "CMD", "CLIENT"}:
            if len(rest) != 1:
                return err(E.E_INVALID_ARGUMENT)
            ups_name = rest[0]
            bad = self._check_ups(ups_name)
            if bad:
                return bad
            ups = self.model.get(ups_name)
            assert ups is not None
            if kind in {"VAR", "RW"} and ups.spec.stale:
                return err(E.E_DATA_STALE)
            if kind == "VAR":
                rows = [f"VAR {ups_name} {k} {quote(v)}" for k, v in self.model.values(ups_name)]
            elif kind == "RW":
                rows = [
                    f"RW {ups_name} {k} {quote(v)}"
                    for k, v in self.model.values(ups_name)
                    if ups.spec.vars[k].writable
                ]
            elif kind == "CMD":
                rows = [f"CMD {ups_name} {c}" for c in ups.spec.commands]
            else:
                rows = [f"CLIENT {ups_name} {c}" for c in ups.spec.clients]
        elif kind in {"ENUM", "RANGE"}:
            if len(rest) != 2:
                return err(E.E_INVALID_ARGUMENT)
            ups_name, var_name = rest
            bad = self._check_var(ups_name, var_name)
            if bad:
                return bad
            spec = self.model.var_spec(ups_name, var_name)
            assert spec is not None
            if kind == "ENUM":
                rows = [f"ENUM {ups_name} {var_name} {quote(e)}" for e in spec.enums]
            else:
                rows = [f"RANGE {ups_name} {var_name} {quote(r.min)} {quote(r.max)}" for r in spec.ranges]

        if rows is None:
            return err(E.E_INVALID_ARGUMENT)
        return [f"BEGIN {echo}", *rows, f"END {echo}"]

    # ---- SET / INSTCMD ----
    def _set(self, state: ConnState, args: List[str]) -> Reply:
        if not args:
            return err(E.E_INVALID_ARGUMENT)
        what, rest = args[0].upper(), args[1:]

        if what == "TRACKING":
            if len(rest) != 1 or rest[0].upper() not in {"ON", "OFF"}:
                return err(E.E_INVALID_ARGUMENT)
            state.tracking = rest[0].upper() == "ON"
            return ["OK"]

        if what != "VAR" or len(rest) != 3:
            return err(E.E_INVALID_ARGUMENT)
        ups_name, var_name, value = rest
        user = self._authorize(state)
        if isinstance(user, list):
            return user
        if "SET" not in user.actions:
            return err(E.E_ACCESS_DENIED)
        bad = self._check_var(ups_name, var_name)
        if bad:
            return bad
        spec = self.model.var_spec(ups_name, var_name)
        assert spec is not None
        if not spec.writable:
            return err(E.E_READONLY)
        if len(value) > self.config.server.max_value_len:
            return err(E.E_TOO_LONG)
        if spec.enums and value not in spec.enums:
            return err(E.E_INVALID_VALUE)
        if spec.ranges and not self._in_ranges(value, spec.ranges):
            return err(E.E_INVALID_VALUE)
        self.model.set_value(ups_name, var_name, value)
        return self._ok(state)

    @staticmethod
    def _in_ranges(value: str, ranges: list) -> bool:
        try:
            v = float(value)
        except ValueError:
            return False
        return any(float(r.min) <= v <= float(r.max) for r in ranges)

    def _instcmd(self, state: ConnState, args: List[str]) -> Reply:
        if len(args) not in (2, 3):
            return err(E.E_INVALID_ARGUMENT)
        ups_name, cmd_name = args[0], args[1]
        param = args[2] if len(args) == 3 else ""
        user = self._authorize(state)
        if isinstance(user, list):
            return user
        bad = self._check_ups(ups_name)
        if bad:
            return bad
        ups = self.model.get(ups_name)
        assert ups is not None
        if cmd_name not in ups.spec.commands:
            return err(E.E_CMD_NOT_SUPPORTED)
        if not user.may_run(cmd_name):
            return err(E.E_ACCESS_DENIED)
        self.model.run_command(ups_name, cmd_name, param)
        return self._ok(state)

    # ---- accept loop ----
    def serve_forever(self) -> None:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            self._sock = s
            s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            s.bind((self.host, self.port))
            s.listen()
            s.settimeout(0.5)
            self.port = s.getsockname()[1]
            log.info("upsd simulator listening on %s:%s", self.host, self.port)
            self.ready.set()

            while not self._stop.is_set():
                try:
                    conn, addr = s.accept()
                except socket.timeout:
                    continue
                except OSError:
                    break
                threading.Thread(target=self._handle, args=(conn, addr), daemon=True).start()

            log.info("upsd simulator shutdown complete")
