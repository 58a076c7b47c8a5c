"""
ledgerkv command line tools

Usage:
    ledgerkv [--store FILE] invoke <function> [args...]
    ledgerkv [--store FILE] serve [--endpoint ENDPOINT]

Commands:
    invoke   - Run one operation against an HDF5 state file and print the payload
    serve    - Serve invocations over ZMQ (REQ/REP, MessagePack)
"""

import argparse
import asyncio
import dataclasses
import sys
from pathlib import Path

from .chaincode import LedgerKV, Operation
from .config import Settings
from .logger import configure_logging
from .storage import Storage


def invoke(store_path: Path, function: str, args: list[str], settings: Settings) -> int:
    """Run one invocation; payload goes to stdout, failures to stderr."""
    with Storage(store_path) as store:
        response = LedgerKV(store, strict_get=settings.strict_get).invoke(function, args)
    if not response.ok:
        print(f"Error: {response.message}", file=sys.stderr)
        return 1
    if response.payload:
        sys.stdout.write(response.payload.decode("utf-8", errors="replace"))
        if not response.payload.endswith(b"\n"):
            sys.stdout.write("\n")
    return 0


def serve(store_path: Path, settings: Settings) -> int:
    from .async_zmq_server import AsyncZMQServer

    with Storage(store_path) as store:
        server = AsyncZMQServer(LedgerKV(store, strict_get=settings.strict_get), settings)
        try:
            asyncio.run(server.start())
        except KeyboardInterrupt:
            pass
    return 0


def main(argv: list[str] | None = None) -> int:
    settings = Settings.from_env()
    parser = argparse.ArgumentParser(prog="ledgerkv", description="ledgerkv tools")
    parser.add_argument(
        "--store", type=Path, default=Path(settings.hdf5_path), help="Path to HDF5 state file"
    )
    parser.add_argument("--log-level", default=settings.log_level)
    subparsers = parser.add_subparsers(dest="command")

    invoke_parser = subparsers.add_parser("invoke", help="Run one operation")
    invoke_parser.add_argument("function", choices=Operation.names())
    invoke_parser.add_argument("args", nargs="*")
    invoke_parser.add_argument(
        "--strict-get", action="store_true", help="Fail on get of a missing key"
    )

    serve_parser = subparsers.add_parser("serve", help="Serve invocations over ZMQ")
    serve_parser.add_argument("--endpoint", default=settings.zmq_endpoint)

    args = parser.parse_args(argv)
    configure_logging(args.log_level.upper())
    if args.command == "invoke":
        if args.strict_get:
            settings = dataclasses.replace(settings, strict_get=True)
        return invoke(args.store, args.function, args.args, settings)
    elif args.command == "serve":
        settings = dataclasses.replace(settings, zmq_endpoint=args.endpoint)
        return serve(args.store, settings)
    parser.print_help()
    return 2


if __name__ == "__main__":
    sys.exit(main())
