from __future__ import annotations

import argparse
import logging
from pathlib import Path

from nutclient.config import load_settings
from nutclient.sim.config_loader import load_sim_config
from nutclient.sim.server import UpsdSimulator

log = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> None:
    p = argparse.ArgumentParser(description="Run the upsd simulator.")
    p.add_argument("--config", default="", help="Path to simulator YAML (defaults to packaged config)")
    args = p.parse_args(argv)

    s = load_settings()
    logging.basicConfig(level=s.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    cfg_path = Path(args.config) if args.config else s.sim_config
    try:
        cfg = load_sim_config(cfg_path)
    except ValueError as e:
        raise SystemExit(str(e))

    server = UpsdSimulator(s.host, s.port, cfg)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        log.info("KeyboardInterrupt -> stopping")
        server.stop()


if __name__ == "__main__":
    main()
