# PingGuard - UDP keep-alive process watchdog
# Copyright (C) 2026 PingGuard Authors
# SPDX-License-Identifier: Apache-2.0
"""
Supervision core.

Binds the keep-alive listener, launches the child and races pulses,
the deadline and child exit until one of them ends the run.
"""

from __future__ import annotations

from pingguard.supervisor.child import ChildExit, ChildProcess, ChildState
from pingguard.supervisor.deadline import DeadlineTimer
from pingguard.supervisor.loop import (
    SupervisionLoop,
    WatchdogResult,
    WatchdogState,
    run_watchdog,
)
from pingguard.supervisor.receiver import Pulse, SignalReceiver

__all__ = [
    "ChildExit",
    "ChildProcess",
    "ChildState",
    "DeadlineTimer",
    "Pulse",
    "SignalReceiver",
    "SupervisionLoop",
    "WatchdogResult",
    "WatchdogState",
    "run_watchdog",
]
