"""
Supervision loop: races keep-alive pulses, the deadline and child exit.
"""

# PingGuard - UDP keep-alive process watchdog
# Copyright (C) 2026 PingGuard Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from collections.abc import Coroutine
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pingguard.config.models import WatchdogConfig
from pingguard.exceptions import (
    BindError,
    ExitCode,
    LaunchError,
    ReceiverError,
    TerminateError,
)
from pingguard.logging_config import bind_watchdog_context, clear_watchdog_context
from pingguard.supervisor.child import ChildExit, ChildProcess
from pingguard.supervisor.deadline import DeadlineTimer
from pingguard.supervisor.receiver import SignalReceiver

logger = logging.getLogger(__name__)


# ── Watchdog State ─────────────────────────────────────────────────

class WatchdogState(Enum):
    """Lifecycle of one supervision run."""
    STARTING = "starting"            # Binding listener, launching child
    RUNNING = "running"              # Waiting on pulse / timeout / child exit
    TIMED_OUT = "timed_out"          # Deadline lapsed, child being killed
    CHILD_EXITED = "child_exited"    # Child exited on its own
    LISTENER_LOST = "listener_lost"  # Socket died mid-run
    INTERRUPTED = "interrupted"      # Watchdog itself got SIGINT/SIGTERM
    DONE = "done"                    # Terminal


@dataclass(frozen=True)
class WatchdogResult:
    """Outcome of a supervision run."""
    state: WatchdogState             # state that led to DONE
    exit_code: int
    child_exit: ChildExit | None = None
    terminated: bool = False
    error: Exception | None = None


# ── Supervision Loop ───────────────────────────────────────────────

class SupervisionLoop:
    """
    Owns the listener, the deadline timer and the child for one run.

    Every event is handled on the single task that calls :meth:`run`, so
    the deadline is only ever mutated from here and needs no lock.

    When several sources are ready at once they are handled in this order:
    child exit, shutdown signal, pulse, listener loss, timeout.  A pulse
    that arrived in the same instant as the timeout therefore resets the
    deadline instead of letting the child be killed.
    """

    def __init__(self, config: WatchdogConfig, *, handle_signals: bool = False):
        self.config = config
        self.handle_signals = handle_signals
        self.state = WatchdogState.STARTING
        self.receiver = SignalReceiver(config.listen_address)
        self.timer = DeadlineTimer(config.timeout)
        self.child: ChildProcess | None = None
        self._shutdown_signal: asyncio.Future[int] | None = None
        self._installed_signals: list[int] = []

    # ── Public API ────────────────────────────────────────────

    async def run(self) -> WatchdogResult:
        """Supervise the child until a terminal event and return the outcome."""
        logger.info(
            "Starting watchdog: timeout=%ss listen=%s", self.config.timeout,
            self.config.listen_address,
        )
        bind_watchdog_context(listen_addr=str(self.config.listen_address))
        try:
            async with self.timer:
                try:
                    await self.receiver.start()
                except BindError as e:
                    logger.error("%s", e)
                    return self._finish(WatchdogState.DONE, e.exit_code, error=e)

                try:
                    try:
                        self.child = ChildProcess.launch(self.config.command, self.config.args)
                    except LaunchError as e:
                        logger.error("%s", e)
                        return self._finish(WatchdogState.DONE, e.exit_code, error=e)

                    bind_watchdog_context(child_pid=self.child.pid)
                    self._install_signal_handlers()
                    try:
                        return await self._supervise(self.child)
                    finally:
                        self._remove_signal_handlers()
                        await self._release_child(self.child)
                finally:
                    self.receiver.close()
        finally:
            clear_watchdog_context("listen_addr", "child_pid")

    # ── RUNNING ───────────────────────────────────────────────

    async def _supervise(self, child: ChildProcess) -> WatchdogResult:
        self.timer.reset()
        self.state = WatchdogState.RUNNING
        logger.info(
            "Monitoring for signal timeout (%ss) and child process (%s) exit",
            self.config.timeout, child.pid,
        )

        exit_task = _spawn(child.wait(), "child-exit")
        pulse_task = _spawn(self.receiver.next_pulse(), "pulse")
        timeout_task = _spawn(self.timer.wait(), "deadline")
        waiters: set[asyncio.Future[Any]] = {exit_task, pulse_task, timeout_task}
        if self._shutdown_signal is not None:
            waiters.add(self._shutdown_signal)

        try:
            while True:
                done, _ = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)

                if exit_task in done:
                    return self._on_child_exit(exit_task.result())

                if self._shutdown_signal is not None and self._shutdown_signal in done:
                    return await self._on_interrupt(child, self._shutdown_signal.result())

                if pulse_task in done:
                    try:
                        pulse_task.result()
                    except ReceiverError as e:
                        status = child.poll()
                        if status is not None:
                            return self._on_child_exit(status)
                        return await self._on_listener_lost(child, e)
                    self.timer.reset()
                    waiters.discard(pulse_task)
                    pulse_task = _spawn(self.receiver.next_pulse(), "pulse")
                    waiters.add(pulse_task)
                    if timeout_task in done:
                        logger.debug("Timeout superseded by a pulse in the same instant")
                        waiters.discard(timeout_task)
                        timeout_task = _spawn(self.timer.wait(), "deadline")
                        waiters.add(timeout_task)
                    continue

                if timeout_task in done:
                    status = child.poll()
                    if status is not None:
                        # Exited between exit-watcher polls
                        return self._on_child_exit(status)
                    if self.receiver.pending:
                        # Pulse landed but its waiter has not run yet: favor liveness
                        logger.debug("Pulse pending at deadline, resetting instead of killing")
                        self.timer.reset()
                        waiters.discard(timeout_task)
                        timeout_task = _spawn(self.timer.wait(), "deadline")
                        waiters.add(timeout_task)
                        continue
                    return await self._on_timeout(child)
        finally:
            for task in (exit_task, pulse_task, timeout_task):
                if not task.done():
                    task.cancel()
            await asyncio.gather(exit_task, pulse_task, timeout_task, return_exceptions=True)

    # ── Terminal transitions ──────────────────────────────────

    def _on_child_exit(self, status: ChildExit) -> WatchdogResult:
        self.state = WatchdogState.CHILD_EXITED
        logger.info("Child process exited on its own (%s). Exiting watchdog.", status.describe())
        return self._finish(WatchdogState.CHILD_EXITED, status.exit_code, child_exit=status)

    async def _on_timeout(self, child: ChildProcess) -> WatchdogResult:
        self.state = WatchdogState.TIMED_OUT
        self.timer.cancel()
        logger.warning(
            "Timeout detected! No signal received for %ss. Terminating child.",
            self.config.timeout,
        )
        error = await self._terminate(child)
        logger.info("Exiting watchdog due to timeout.")
        return self._finish(
            WatchdogState.TIMED_OUT, ExitCode.TIMEOUT,
            child_exit=child.exit, terminated=True, error=error,
        )

    async def _on_listener_lost(self, child: ChildProcess, exc: ReceiverError) -> WatchdogResult:
        self.state = WatchdogState.LISTENER_LOST
        self.timer.cancel()
        logger.error("%s. Terminating child and exiting watchdog.", exc)
        await self._terminate(child)
        return self._finish(
            WatchdogState.LISTENER_LOST, exc.exit_code,
            child_exit=child.exit, terminated=True, error=exc,
        )

    async def _on_interrupt(self, child: ChildProcess, signum: int) -> WatchdogResult:
        self.state = WatchdogState.INTERRUPTED
        self.timer.cancel()
        logger.warning("Watchdog received %s. Terminating child.", signal.Signals(signum).name)
        await self._terminate(child)
        return self._finish(
            WatchdogState.INTERRUPTED, ExitCode.for_signal(signum),
            child_exit=child.exit, terminated=True,
        )

    async def _terminate(self, child: ChildProcess) -> TerminateError | None:
        try:
            await child.terminate(
                grace_period=self.config.grace_period,
                confirm_timeout=self.config.kill_confirm,
            )
        except TerminateError as e:
            logger.error("Termination failed: %s", e)
            return e
        return None

    def _finish(
        self,
        state: WatchdogState,
        exit_code: int,
        *,
        child_exit: ChildExit | None = None,
        terminated: bool = False,
        error: Exception | None = None,
    ) -> WatchdogResult:
        self.state = WatchdogState.DONE
        return WatchdogResult(
            state=state,
            exit_code=int(exit_code),
            child_exit=child_exit,
            terminated=terminated,
            error=error,
        )

    async def _release_child(self, child: ChildProcess) -> None:
        """Never leave an unsupervised child behind, whatever the exit path."""
        if child.is_alive() and not child.terminated:
            logger.warning("Child %s still alive while watchdog exits, killing it", child.pid)
            await self._terminate(child)

    # ── Watchdog signals ──────────────────────────────────────

    def _install_signal_handlers(self) -> None:
        if not self.handle_signals or sys.platform == "win32":
            return
        loop = asyncio.get_running_loop()
        self._shutdown_signal = loop.create_future()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self._on_signal, int(sig))
            self._installed_signals.append(int(sig))

    def _on_signal(self, signum: int) -> None:
        if self._shutdown_signal is not None and not self._shutdown_signal.done():
            self._shutdown_signal.set_result(signum)

    def _remove_signal_handlers(self) -> None:
        if not self._installed_signals:
            return
        loop = asyncio.get_running_loop()
        for sig in self._installed_signals:
            loop.remove_signal_handler(sig)
        self._installed_signals.clear()


def _spawn(coro: Coroutine[Any, Any, Any], name: str) -> asyncio.Task[Any]:
    return asyncio.create_task(coro, name=f"pingguard-{name}")


async def run_watchdog(config: WatchdogConfig, *, handle_signals: bool = False) -> int:
    """Run one supervision loop and return the process exit code."""
    result = await SupervisionLoop(config, handle_signals=handle_signals).run()
    logger.debug("Watchdog finished: state=%s exit_code=%s", result.state.value, result.exit_code)
    return result.exit_code
