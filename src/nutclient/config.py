from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


@dataclass(frozen=True)
class Settings:
    host: str
    port: int
    username: str
    password: str
    timeout_s: float
    log_level: str
    sim_config: Optional[Path]


def load_settings() -> Settings:
    load_dotenv(override=False)

    host = os.getenv("NUT_HOST", "127.0.0.1")
    port = int(os.getenv("NUT_PORT", "3493"))
    username = os.getenv("NUT_USERNAME", "")
    password = os.getenv("NUT_PASSWORD", "")
    timeout_s = float(os.getenv("NUT_TIMEOUT_S", "10.0"))
    log_level = os.getenv("NUT_LOG_LEVEL", "INFO").upper()
    sim_config_env = os.getenv("NUT_SIM_CONFIG", "").strip()
    sim_config = Path(sim_config_env) if sim_config_env else None

    return Settings(
        host=host,
        port=port,
        username=username,
        password=password,
        timeout_s=timeout_s,
        log_level=log_level,
        sim_config=sim_config,
    )
