from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from nutclient.common.ids import make_tracking_id
from nutclient.sim.config_schema import SimConfig, UpsSpec, VarSpec


@dataclass
class UpsState:
    name: str
    spec: UpsSpec
    values: Dict[str, str]
    logins: int = 0
    fsd: bool = False
    last_command: Optional[Tuple[str, str]] = None


@dataclass
class TrackingTable:
    results: Dict[str, str] = field(default_factory=dict)


class UpsModel:
    """Shared, mutable state of the simulated UPSes.

    Every connection thread goes through the lock; values start from the
    config and change on SET VAR.
    """

    def __init__(self, config: SimConfig) -> None:
        self.config = config
        self._lock = threading.Lock()
        self._ups: Dict[str, UpsState] = {
            name: UpsState(name=name, spec=spec, values={k: v.value for k, v in spec.vars.items()})
            for name, spec in config.ups.items()
        }
        self._tracking = TrackingTable()

    def names(self) -> List[str]:
        return list(self._ups)

    def get(self, ups_name: str) -> Optional[UpsState]:
        return self._ups.get(ups_name)

    def var_spec(self, ups_name: str, var_name: str) -> Optional[VarSpec]:
        ups = self._ups.get(ups_name)
        if ups is None:
            return None
        return ups.spec.vars.get(var_name)

    def value(self, ups_name: str, var_name: str) -> str:
        with self._lock:
            return self._ups[ups_name].values[var_name]

    def values(self, ups_name: str) -> List[Tuple[str, str]]:
        with self._lock:
            return list(self._ups[ups_name].values.items())

    def set_value(self, ups_name: str, var_name: str, value: str) -> None:
        with self._lock:
            self._ups[ups_name].values[var_name] = value

    def add_login(self, ups_name: str) -> None:
        with self._lock:
            self._ups[ups_name].logins += 1

    def drop_login(self, ups_name: str) -> None:
        with self._lock:
            ups = self._ups[ups_name]
            ups.logins = max(0, ups.logins - 1)

    def num_logins(self, ups_name: str) -> int:
        with self._lock:
            return self._ups[ups_name].logins

    def run_command(self, ups_name: str, command: str, param: str) -> None:
        with self._lock:
            self._ups[ups_name].last_command = (command, param)

    def set_fsd(self, ups_name: str) -> None:
        with self._lock:
            self._ups[ups_name].fsd = True

    def track(self) -> str:
        # Simulated driver completes synchronously
        tid = make_tracking_id()
        with self._lock:
            self._tracking.results[tid] = "SUCCESS"
        return tid

    def tracking_result(self, tid: str) -> Optional[str]:
        with self._lock:
            return self._tracking.results.get(tid)
