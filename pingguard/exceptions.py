from __future__ import annotations
# PingGuard - UDP keep-alive process watchdog
# Copyright (C) 2026 PingGuard Authors
# SPDX-License-Identifier: Apache-2.0

"""Unified exception hierarchy and exit codes for PingGuard.

All domain-specific exceptions derive from :class:`PingGuardError`,
enabling callers to catch the entire family with a single clause::

    try:
        ...
    except PingGuardError as e:
        logger.error("Watchdog error: %s", e)

Every fatal condition maps to a distinct :class:`ExitCode` so automation
can tell "child failed on its own" apart from "watchdog killed it" and
"watchdog could not start".
"""

from enum import IntEnum


class ExitCode(IntEnum):
    """Process exit codes decided by the watchdog itself."""

    SUCCESS = 0
    CHILD_FAILED = 1       # child status that cannot be mirrored
    USAGE = 2              # invalid CLI arguments / configuration
    TIMEOUT = 124          # child killed after keep-alive deadline lapsed
    LISTENER_FAILURE = 125  # listener could not be bound, or was lost
    LAUNCH_FAILURE = 127   # child executable could not be started

    @staticmethod
    def for_signal(signum: int) -> int:
        """Shell convention for "terminated by signal N"."""
        return 128 + signum


class PingGuardError(Exception):
    """Base exception for all PingGuard errors."""

    exit_code: int = ExitCode.CHILD_FAILED


# ── Configuration ────────────────────────────────────────────


class ConfigError(PingGuardError):
    """Invalid listen address, timeout or command line."""

    exit_code = ExitCode.USAGE


# ── Watchdog runtime ─────────────────────────────────────────


class WatchdogError(PingGuardError):
    """Errors raised by the supervision core."""


class BindError(WatchdogError):
    """Listener address is in use or otherwise unavailable."""

    exit_code = ExitCode.LISTENER_FAILURE

    def __init__(self, message: str, *, address: str = "") -> None:
        super().__init__(message)
        self.address = address


class ReceiverError(WatchdogError):
    """Listener socket was lost after a successful bind."""

    exit_code = ExitCode.LISTENER_FAILURE


class LaunchError(WatchdogError):
    """Child executable could not be started."""

    exit_code = ExitCode.LAUNCH_FAILURE

    def __init__(self, message: str, *, command: str = "") -> None:
        super().__init__(message)
        self.command = command


class TerminateError(WatchdogError):
    """Forceful termination of the child failed.

    Best effort only: the watchdog still exits with the code of the event
    that triggered the termination.
    """

    def __init__(self, message: str, *, pid: int | None = None) -> None:
        super().__init__(message)
        self.pid = pid
