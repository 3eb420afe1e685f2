from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any

from nutclient.client.session import NutSession
from nutclient.config import load_settings
from nutclient.protocol.errors import NutError


def _query(session: NutSession, args: argparse.Namespace) -> Any:
    if args.what == "list":
        return session.list_ups()
    if args.what == "vars":
        return session.list_vars(args.ups)
    if args.what == "get":
        return {"upsName": args.ups, "variableName": args.var, "value": session.get_var(args.ups, args.var)}
    if args.what == "commands":
        return session.list_commands(args.ups)
    if args.what == "version":
        return {"server": session.get_server_version(), "protocol": session.get_protocol_version()}
    raise ValueError(f"Unknown query: {args.what}")


def main(argv: list[str] | None = None) -> None:
    p = argparse.ArgumentParser(description="Query a NUT server (upsd).")
    p.add_argument("what", choices=["list", "vars", "get", "commands", "version"])
    p.add_argument("ups", nargs="?", default="")
    p.add_argument("var", nargs="?", default="")
    args = p.parse_args(argv)

    if args.what in {"vars", "get", "commands"} and not args.ups:
        p.error(f"{args.what} requires <ups>")
    if args.what == "get" and not args.var:
        p.error("get requires <ups> <var>")

    s = load_settings()
    logging.basicConfig(level=s.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        with NutSession.from_settings(s) as session:
            result = _query(session, args)
    except NutError as e:
        print(str(e), file=sys.stderr)
        raise SystemExit(1)

    print(json.dumps(result, indent=2))


if __name__ == "__main__":
    main()
