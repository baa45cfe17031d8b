"""
Process handle for the supervised child.
"""

# PingGuard - UDP keep-alive process watchdog
# Copyright (C) 2026 PingGuard Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import asyncio
import logging
import os
import signal
import subprocess
import sys
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pingguard.exceptions import ExitCode, LaunchError, TerminateError

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.05


# ── Child State ────────────────────────────────────────────────────

class ChildState(Enum):
    """State of the child process."""
    RUNNING = "running"          # Spawned, not yet reaped
    TERMINATING = "terminating"  # terminate() in progress
    EXITED = "exited"            # Exit status observed


@dataclass(frozen=True)
class ChildExit:
    """Exit status of the child as reported by the OS."""
    returncode: int

    @property
    def signal(self) -> int | None:
        """Signal number that killed the child (POSIX), else None."""
        return -self.returncode if self.returncode < 0 else None

    @property
    def success(self) -> bool:
        return self.returncode == 0

    @property
    def exit_code(self) -> int:
        """Watchdog exit code that mirrors this status."""
        if self.signal is not None:
            return ExitCode.for_signal(self.signal)
        if 0 <= self.returncode <= 255:
            return self.returncode
        return ExitCode.CHILD_FAILED

    def describe(self) -> str:
        if self.signal is not None:
            try:
                name = signal.Signals(self.signal).name
            except ValueError:
                name = str(self.signal)
            return f"killed by {name}"
        return f"exit code {self.returncode}"


def _get_popen_kwargs() -> dict[str, Any]:
    """Put the child in its own process group so the whole tree can be killed."""
    if sys.platform == "win32":
        return {"creationflags": subprocess.CREATE_NEW_PROCESS_GROUP}
    return {"start_new_session": True}


# ── Child Process ──────────────────────────────────────────────────

class ChildProcess:
    """
    Handle for the one child the watchdog supervises.

    Stdio is inherited, so the child's own output stays visible to the
    operator.  The handle is owned exclusively by the supervision loop.
    """

    def __init__(self, process: subprocess.Popen, command: str):
        self.process = process
        self.command = command
        self.state = ChildState.RUNNING
        self.exit: ChildExit | None = None
        self.terminated = False

    @property
    def pid(self) -> int:
        return self.process.pid

    @classmethod
    def launch(cls, command: str, args: Sequence[str] = ()) -> ChildProcess:
        """
        Start the child process.

        Args:
            command: Path of the executable
            args: Arguments passed through verbatim

        Returns:
            A running child handle

        Raises:
            LaunchError: Executable missing, not executable, permission
                denied or any other OS-level spawn failure
        """
        cmd = [command, *args]
        logger.info("Launching child process: %s with args: %s", command, list(args))
        try:
            process = subprocess.Popen(cmd, **_get_popen_kwargs())
        except FileNotFoundError as e:
            raise LaunchError(
                f"Failed to spawn child process '{command}': not found", command=command,
            ) from e
        except PermissionError as e:
            raise LaunchError(
                f"Failed to spawn child process '{command}': permission denied",
                command=command,
            ) from e
        except OSError as e:
            raise LaunchError(
                f"Failed to spawn child process '{command}': {e}", command=command,
            ) from e

        logger.info("Child process launched (PID %s)", process.pid)
        return cls(process, command)

    def _record_exit(self) -> ChildExit | None:
        if self.exit is not None:
            return self.exit
        returncode = self.process.poll()
        if returncode is None:
            return None
        self.exit = ChildExit(returncode)
        self.state = ChildState.EXITED
        return self.exit

    def poll(self) -> ChildExit | None:
        """Non-blocking exit check."""
        return self._record_exit()

    def is_alive(self) -> bool:
        return self._record_exit() is None

    async def wait(self) -> ChildExit:
        """Suspend until the OS reports the child's exit."""
        while True:
            status = self._record_exit()
            if status is not None:
                return status
            await asyncio.sleep(POLL_INTERVAL)

    async def _wait_for_exit(self, timeout: float) -> ChildExit | None:
        if timeout <= 0:
            return self._record_exit()
        try:
            async with asyncio.timeout(timeout):
                return await self.wait()
        except TimeoutError:
            return self._record_exit()

    def _signal_group(self, sig: int) -> bool:
        """Signal the child's process group; fall back to the child alone."""
        if sys.platform == "win32":
            try:
                if sig == signal.SIGTERM:
                    self.process.send_signal(signal.CTRL_BREAK_EVENT)
                else:
                    self.process.kill()
                return True
            except OSError as e:
                logger.error("Failed to signal child %s: %s", self.pid, e)
                return False

        try:
            # PGID equals the child's PID because of start_new_session
            os.killpg(self.pid, sig)
            logger.info("Sent %s to process group %s", signal.Signals(sig).name, self.pid)
            return True
        except ProcessLookupError:
            # Group leader gone and group empty; nothing left to kill
            return True
        except OSError as e:
            logger.warning(
                "Failed to signal process group %s with killpg: %s. "
                "Falling back to PID %s.", self.pid, e, self.pid,
            )

        try:
            self.process.send_signal(sig)
            logger.info("Fallback %s sent to PID %s", signal.Signals(sig).name, self.pid)
            return True
        except ProcessLookupError:
            return True
        except OSError as e:
            logger.error("Fallback signal to child process %s failed: %s", self.pid, e)
            return False

    async def terminate(
        self,
        grace_period: float = 0.0,
        confirm_timeout: float = 0.1,
    ) -> None:
        """
        Forcefully terminate the child and its process group.

        Idempotent: a no-op if the child already exited or a previous call
        already terminated it.

        Flow:
        1. If grace_period > 0, send SIGTERM and wait up to grace_period
        2. Send SIGKILL (falls back to the child PID if the group kill fails)
        3. Wait up to confirm_timeout to reap the child

        Raises:
            TerminateError: If no kill signal could be delivered
        """
        if self.terminated or self.state == ChildState.TERMINATING:
            logger.debug("Child %s already terminated", self.pid)
            return
        if self._record_exit() is not None:
            logger.debug("Child %s already exited (%s)", self.pid, self.exit.describe())
            return

        self.state = ChildState.TERMINATING
        logger.info("Terminating child process group (PID %s)", self.pid)
        try:
            if grace_period > 0 and self._signal_group(signal.SIGTERM):
                status = await self._wait_for_exit(grace_period)
                if status is not None:
                    logger.info("Child exited within grace period: %s", status.describe())
                    return
                logger.warning(
                    "Child %s ignored SIGTERM for %.1fs, sending SIGKILL",
                    self.pid, grace_period,
                )

            kill_sig = signal.SIGKILL if sys.platform != "win32" else signal.SIGTERM
            if not self._signal_group(kill_sig):
                raise TerminateError(
                    f"Could not kill child process {self.pid}", pid=self.pid,
                )

            status = await self._wait_for_exit(confirm_timeout)
            if status is not None:
                logger.info("Child confirmed exit after kill: %s", status.describe())
            else:
                logger.warning(
                    "Child %s still running shortly after kill signal", self.pid,
                )
        finally:
            self.terminated = True
            if self.state == ChildState.TERMINATING:
                self.state = ChildState.EXITED if self.exit else ChildState.RUNNING
