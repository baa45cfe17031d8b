"""
Restartable keep-alive deadline.
"""

# PingGuard - UDP keep-alive process watchdog
# Copyright (C) 2026 PingGuard Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import asyncio
import logging
import math

logger = logging.getLogger(__name__)


class DeadlineTimer:
    """
    Single countdown measured on the event loop's monotonic clock.

    The only state is the next expiry instant.  ``reset()`` moves it,
    ``wait()`` suspends until it lapses.  A waiter re-reads the deadline
    every time it wakes, so a reset issued while it sleeps postpones the
    timeout instead of racing it: a superseded cycle can never fire.

    All methods must be called from the event loop thread that owns the
    supervision task.
    """

    def __init__(self, duration: float):
        if not math.isfinite(duration) or duration <= 0:
            raise ValueError("duration must be a finite positive number")
        self.duration = duration
        self._deadline: float | None = None
        self._cancelled = False
        self._loop: asyncio.AbstractEventLoop | None = None

    # ── State ─────────────────────────────────────────────────

    def _now(self) -> float:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop.time()

    @property
    def armed(self) -> bool:
        return self._deadline is not None and not self._cancelled

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def deadline(self) -> float | None:
        """Loop-clock instant of the pending expiry, or None if disarmed."""
        return self._deadline if self.armed else None

    @property
    def remaining(self) -> float | None:
        """Seconds until expiry (never negative), or None if disarmed."""
        if not self.armed:
            return None
        return max(0.0, self._deadline - self._now())

    @property
    def expired(self) -> bool:
        return self.armed and self._now() >= self._deadline

    # ── Operations ────────────────────────────────────────────

    def reset(self, duration: float | None = None) -> None:
        """(Re)start the countdown from now, discarding any pending expiry.

        A no-op once the timer has been cancelled.
        """
        if self._cancelled:
            logger.debug("Reset ignored: deadline timer already cancelled")
            return
        if duration is not None:
            if not math.isfinite(duration) or duration <= 0:
                raise ValueError("duration must be a finite positive number")
            self.duration = duration
        self._deadline = self._now() + self.duration

    def cancel(self) -> None:
        """Disarm permanently.  Pending and future ``wait()`` calls never fire."""
        self._cancelled = True
        self._deadline = None

    async def wait(self) -> None:
        """Suspend until the current deadline lapses.

        Returns at most once per call.  If the timer is cancelled while
        waiting, the waiter suspends forever and must be cancelled by its
        owner.

        Raises:
            RuntimeError: If the timer has never been armed.
        """
        if self._deadline is None and not self._cancelled:
            raise RuntimeError("DeadlineTimer.wait() called before reset()")

        while True:
            if self._cancelled:
                await asyncio.get_running_loop().create_future()  # parked until the owner cancels us
            delay = self._deadline - self._now()
            if delay <= 0:
                return
            await asyncio.sleep(delay)

    # ── Scoped usage ──────────────────────────────────────────

    async def __aenter__(self) -> DeadlineTimer:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.cancel()
