"""simrepl CLI entry point."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List

from .client import DEFAULT_ADDRESS, run_client
from .console import ConsoleConfig

LOG = logging.getLogger("simrepl.cli")


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Interactive console for live simulations")
    parser.add_argument("--log-level", default=os.environ.get("SIMREPL_LOG", "INFO"), help="Logging level (default INFO)")
    sub = parser.add_subparsers(dest="mode", required=True)

    demo = sub.add_parser("demo", help="Run the demo simulation with a console attached")
    demo.add_argument("--serve", metavar="ADDRESS", help="Serve the console on 'host:port' or ':port' instead of this terminal")
    demo.add_argument("-r", "--run", action="append", default=[], metavar="COMMAND", help="Console command to run on startup (repeatable)")
    demo.add_argument("--background", action="store_true", help="Execute commands on a dedicated thread")
    demo.add_argument("--interval", type=float, default=0.05, help="Seconds between simulation ticks")
    demo.add_argument("--max-ticks", type=int, help="Stop after this many ticks")
    demo.add_argument("--timeout", type=float, help="Per-command timeout in seconds")
    demo.add_argument("--seed", type=int, help="Random seed for the demo world")
    demo.add_argument(
        "--history",
        type=Path,
        default=Path.home() / ".simrepl-history",
        help="Path to command history file (prompt_toolkit mode)",
    )

    connect = sub.add_parser("connect", help="Connect to a remote console")
    connect.add_argument("address", nargs="?", default=DEFAULT_ADDRESS, help="Server address ('host:port' or ':port')")
    connect.add_argument("-r", "--run", action="append", default=[], metavar="COMMAND", help="Command to run on startup (repeatable)")
    return parser


def main(argv: List[str] | None = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.log_level)
    if args.mode == "connect":
        return run_client(args.address, args.run)

    from .demo import run_demo

    config = ConsoleConfig(command_timeout=args.timeout, history_path=args.history)
    try:
        world = run_demo(
            serve=args.serve,
            run=args.run,
            background=args.background,
            interval=args.interval,
            max_ticks=args.max_ticks,
            config=config,
            seed=args.seed,
        )
    except (OSError, ValueError) as exc:
        LOG.error("demo failed: %s", exc)
        return 1
    LOG.info("demo finished after %d ticks", world.tick)
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
