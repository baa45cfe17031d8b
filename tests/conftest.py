# PingGuard - UDP keep-alive process watchdog
# Copyright (C) 2026 PingGuard Authors
# SPDX-License-Identifier: Apache-2.0
"""Global test fixtures for PingGuard.

Provides child command factories, config factories, a UDP pulse sender
and teardown of any child process a test leaves behind.
"""

from __future__ import annotations

import logging
import os
import signal
import sys
from collections.abc import Callable
from typing import Any

import pytest

from pingguard.config import WatchdogConfig
from pingguard.supervisor import child as child_mod

logger = logging.getLogger(__name__)

from tests.helpers.net import PulseSender


# ── Orphan teardown ───────────────────────────────────────


@pytest.fixture(autouse=True)
def _reap_children(monkeypatch: pytest.MonkeyPatch):
    """Kill the process group of every child launched during the test.

    Failing tests can leave ``sleep``-style children running; matching on
    the PIDs recorded at launch keeps unrelated processes safe.
    """
    launched: list[int] = []
    original = child_mod.ChildProcess.launch.__func__

    def _tracking_launch(cls, command, args=()):
        handle = original(cls, command, args)
        if isinstance(handle.pid, int):
            launched.append(handle.pid)
        return handle

    monkeypatch.setattr(
        child_mod.ChildProcess, "launch", classmethod(_tracking_launch),
    )
    yield launched
    _kill_orphan_children(launched)


def _kill_orphan_children(pids: list[int]) -> None:
    """SIGKILL the process groups led by *pids*, ignoring ones already gone."""
    if sys.platform == "win32":
        return
    for pid in pids:
        try:
            os.killpg(pid, signal.SIGKILL)
            logger.info("Killed orphan child process group %s", pid)
        except (ProcessLookupError, PermissionError):
            pass


# ── Factories ─────────────────────────────────────────────


@pytest.fixture
def python_child() -> Callable[[str], tuple[str, list[str]]]:
    """Return a factory producing ``(command, args)`` running Python *code*."""

    def _make(code: str) -> tuple[str, list[str]]:
        return sys.executable, ["-c", code]

    return _make


@pytest.fixture
def make_config(python_child) -> Callable[..., WatchdogConfig]:
    """Factory for configs listening on an ephemeral loopback port."""

    def _make(
        code: str = "import time; time.sleep(30)",
        *,
        timeout: float = 0.5,
        listen_addr: str = "127.0.0.1:0",
        **kwargs: Any,
    ) -> WatchdogConfig:
        command, args = python_child(code)
        return WatchdogConfig.from_values(
            listen_addr=listen_addr,
            timeout_secs=timeout,
            command=kwargs.pop("command", command),
            args=kwargs.pop("args", args),
            **kwargs,
        )

    return _make


@pytest.fixture
def pulse_sender():
    """UDP sender used to deliver keep-alive datagrams."""
    sender = PulseSender()
    yield sender
    sender.close()
