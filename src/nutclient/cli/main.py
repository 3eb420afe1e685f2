from __future__ import annotations

import argparse


def main() -> None:
    p = argparse.ArgumentParser(prog="nutclient", description="Network UPS Tools (NUT) protocol client")
    sub = p.add_subparsers(dest="cmd", required=True)

    # sim
    p_sim = sub.add_parser("sim", help="Run the TCP upsd simulator")
    p_sim.add_argument("--config", default="", help="Path to simulator YAML")
    p_sim.set_defaults(_entry="nutclient.cli.run_sim")

    # queries
    for name, help_text in [
        ("list", "List the UPSes known to upsd"),
        ("vars", "List the variables of a UPS"),
        ("get", "Get one variable of a UPS"),
        ("commands", "List the instant commands of a UPS"),
        ("version", "Show server and protocol versions"),
    ]:
        sp = sub.add_parser(name, help=help_text)
        if name in {"vars", "get", "commands"}:
            sp.add_argument("ups")
        if name == "get":
            sp.add_argument("var")
        sp.set_defaults(_entry="nutclient.cli.run_query")

    args = p.parse_args()

    if args._entry == "nutclient.cli.run_sim":
        from nutclient.cli.run_sim import main as _m

        _m(["--config", args.config] if args.config else [])
        return

    if args._entry == "nutclient.cli.run_query":
        from nutclient.cli.run_query import main as _m

        argv = [args.cmd]
        if getattr(args, "ups", ""):
            argv.append(args.ups)
        if getattr(args, "var", ""):
            argv.append(args.var)
        _m(argv)
        return

    raise SystemExit(2)
