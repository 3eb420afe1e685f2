from __future__ import annotations

import importlib.resources as importlib_resources
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from nutclient.sim.config_schema import SimConfig


def parse_sim_config(raw: Dict[str, Any], *, source: str = "<dict>") -> SimConfig:
    try:
        return SimConfig.model_validate(raw)
    except ValidationError as e:
        # Re-raise with a cleaner message for CLI usage
        raise ValueError(f"Invalid simulator config: {source}\n{e}") from e


def load_sim_config(path: Optional[Path] = None) -> SimConfig:
    """Load + validate the simulator config.

    Order:
    1) Explicit path arg (must exist)
    2) NUT_SIM_CONFIG env var (must exist when set)
    3) Packaged default (nutclient/resources/sim_config.yaml)
    """
    if path is None:
        env_path = os.getenv("NUT_SIM_CONFIG", "").strip()
        if env_path:
            path = Path(env_path)

    if path is not None:
        if not path.exists():
            raise ValueError(f"Simulator config not found: {path}")
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        return parse_sim_config(raw, source=str(path))

    txt = importlib_resources.files("nutclient.resources").joinpath("sim_config.yaml").read_text(encoding="utf-8")
    return parse_sim_config(yaml.safe_load(txt) or {}, source="packaged sim_config.yaml")
