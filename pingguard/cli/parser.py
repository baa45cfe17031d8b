# PingGuard - UDP keep-alive process watchdog
# Copyright (C) 2026 PingGuard Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

from pingguard import __version__
from pingguard.config import (
    DEFAULT_GRACE_SECS,
    DEFAULT_LISTEN_ADDR,
    DEFAULT_TIMEOUT_SECS,
    WatchdogConfig,
)
from pingguard.exceptions import ConfigError, ExitCode

logger = logging.getLogger("pingguard")


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser.  Defaults come from ``PINGGUARD_*`` env vars."""
    parser = argparse.ArgumentParser(
        prog="pingguard",
        description=(
            "Launch a child process and kill it when UDP keep-alive "
            "datagrams stop arriving."
        ),
        epilog=(
            "Exit codes: child's own code when it exits by itself, "
            f"{int(ExitCode.TIMEOUT)} timeout, "
            f"{int(ExitCode.LISTENER_FAILURE)} listener failure, "
            f"{int(ExitCode.LAUNCH_FAILURE)} launch failure. "
            "A child that itself exits with one of these codes cannot be told "
            "apart from the watchdog."
        ),
    )
    parser.add_argument(
        "-l", "--listen-addr",
        metavar="IP:PORT",
        default=os.environ.get("PINGGUARD_LISTEN_ADDR", DEFAULT_LISTEN_ADDR),
        help="UDP address to listen on for keep-alive signals (default: %(default)s)",
    )
    parser.add_argument(
        "-t", "--timeout-secs",
        metavar="SECONDS",
        default=os.environ.get("PINGGUARD_TIMEOUT_SECS", DEFAULT_TIMEOUT_SECS),
        help="Kill the child if no signal arrives within this many seconds (default: %(default)s)",
    )
    parser.add_argument(
        "--grace-secs",
        metavar="SECONDS",
        default=os.environ.get("PINGGUARD_GRACE_SECS", DEFAULT_GRACE_SECS),
        help="Send SIGTERM and wait this long before SIGKILL (default: %(default)s, kill at once)",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("PINGGUARD_LOG_LEVEL", "INFO"),
        help="Log level (default: %(default)s)",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write JSON logs to this rotating file",
    )
    parser.add_argument(
        "-V", "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "binary_path",
        metavar="BINARY_PATH",
        help="Executable to launch and supervise",
    )
    parser.add_argument(
        "child_args",
        metavar="CHILD_ARGS",
        nargs=argparse.REMAINDER,
        help="Arguments passed verbatim to the child (optionally after --)",
    )
    return parser


def parse_config(argv: list[str] | None = None) -> tuple[argparse.Namespace, WatchdogConfig]:
    """Parse the command line into a validated :class:`WatchdogConfig`.

    Exits with status 2 on invalid arguments, like argparse itself.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    child_args = list(args.child_args)
    if child_args and child_args[0] == "--":
        child_args = child_args[1:]

    try:
        config = WatchdogConfig.from_values(
            listen_addr=args.listen_addr,
            timeout_secs=args.timeout_secs,
            command=args.binary_path,
            args=child_args,
            grace_secs=args.grace_secs,
        )
    except ConfigError as e:
        parser.error(str(e))
    return args, config


def cli_main(argv: list[str] | None = None) -> None:
    from dotenv import load_dotenv

    load_dotenv()

    args, config = parse_config(argv)

    from pingguard.logging_config import setup_logging

    setup_logging(level=args.log_level, log_file=args.log_file)
    logger.debug(
        "Watchdog configuration: listen=%s timeout=%ss grace=%ss command=%s args=%s",
        config.listen_address, config.timeout, config.grace_period,
        config.command, list(config.args),
    )

    from pingguard.supervisor import run_watchdog

    exit_code = asyncio.run(run_watchdog(config, handle_signals=True))
    sys.exit(exit_code)
