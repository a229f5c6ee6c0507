#!/usr/bin/env python3
# Copyright (c) 2025 The Charms SDK developers
# Distributed under the MIT software license

"""
charms - command line front end for the Charms SDK

Commands:
  demo                         Encrypt/decrypt/hash the demo message
  hash TEXT                    Charm hash of TEXT (hex)
  check FILE [--remote URL]    Check the spell in FILE ({app, tx, x?, w?} JSON)
  escrow --next N [--current N]
                               Check one escrow transition by state codes
  serve [--host H] [--port P]  Run the spell checker service

`check` exits 1 when the spell is invalid.
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from .builders import build_escrow_transaction
from .charm import hash_message, run_charm_demo
from .charm_types import App, Transaction
from .client import SpellClient, SpellClientError
from .data import Data, WireFormatError
from .escrow_checker import EscrowState, escrow_state_name
from .spell_checker import check_spell

log = logging.getLogger(__name__)


def _load_spell_file(path: str) -> dict:
    with open(path, "r") as f:
        data = json.load(f)
    if not isinstance(data, dict) or "app" not in data or "tx" not in data:
        raise WireFormatError(f"{path}: expected an object with 'app' and 'tx'")
    return data


def _optional_data(data: dict, key: str) -> Optional[Data]:
    value = data.get(key)
    return Data.from_dict(value) if value else None


def cmd_demo(args) -> int:
    print(json.dumps(run_charm_demo(), indent=2))
    return 0


def cmd_hash(args) -> int:
    print(hash_message(args.text))
    return 0


def cmd_check(args) -> int:
    try:
        data = _load_spell_file(args.file)
        app = App.from_dict(data["app"])
        tx = Transaction.from_dict(data["tx"])
        x = _optional_data(data, "x")
        w = _optional_data(data, "w")
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    if args.remote:
        log.info(f"Checking {app.tag} via {args.remote}")
        try:
            result = SpellClient(args.remote).check_spell(app, tx, x, w)
        except SpellClientError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 2
    else:
        result = check_spell(app, tx, x, w).to_dict()

    print(json.dumps(result, indent=2))
    return 0 if result["valid"] else 1


def cmd_escrow(args) -> int:
    next_state = EscrowState.from_code(args.next)
    current_state = EscrowState.from_code(args.current) if args.current is not None else None
    if next_state is None or (args.current is not None and current_state is None):
        print("Error: unknown escrow state code", file=sys.stderr)
        return 2

    app, tx = build_escrow_transaction(args.tag, next_state, args.amount, current_state)
    result = check_spell(app, tx)

    print(f"{escrow_state_name(current_state)} -> {escrow_state_name(next_state)}: "
          f"{'VALID' if result.valid else 'INVALID'}")
    for error in result.details.errors:
        print(f"  {error}")
    return 0 if result.valid else 1


def cmd_serve(args) -> int:
    # Flask is only needed here
    from .server import ServerConfig, serve

    config = ServerConfig.from_env()
    if args.host:
        config.host = args.host
    if args.port:
        config.port = args.port
    if args.keystore:
        config.keystore_path = args.keystore
    serve(config)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="charms", description="Charms SDK tools")
    parser.add_argument("--log-level", default="WARNING",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    subparsers.add_parser("demo", help="Run the Charm cipher demo")

    hash_parser = subparsers.add_parser("hash", help="Hash a UTF-8 string")
    hash_parser.add_argument("text", help="Text to hash")

    check_parser = subparsers.add_parser("check", help="Check a spell JSON file")
    check_parser.add_argument("file", help="JSON file with app, tx, x, w")
    check_parser.add_argument("--remote", help="Spell service URL (default: check locally)")

    escrow_parser = subparsers.add_parser("escrow", help="Check an escrow transition")
    escrow_parser.add_argument("--current", type=int, help="Current state code (omit for creation)")
    escrow_parser.add_argument("--next", type=int, required=True, help="Next state code")
    escrow_parser.add_argument("--amount", type=int, default=0, help="Output value in satoshis")
    escrow_parser.add_argument("--tag", default="escrow:cli", help="Escrow app tag")

    serve_parser = subparsers.add_parser("serve", help="Run the spell checker service")
    serve_parser.add_argument("--host", help="Bind address (default: 0.0.0.0)")
    serve_parser.add_argument("--port", type=int, help="Port (default: 8090)")
    serve_parser.add_argument("--keystore", help="JSON keystore path (default: in-memory)")

    return parser


COMMANDS = {
    "demo": cmd_demo,
    "hash": cmd_hash,
    "check": cmd_check,
    "escrow": cmd_escrow,
    "serve": cmd_serve,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    handler = COMMANDS.get(args.command)
    if handler is None:
        parser.print_help()
        return 2
    return handler(args)


if __name__ == "__main__":
    sys.exit(main())
