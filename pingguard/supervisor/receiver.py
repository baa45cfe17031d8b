"""
UDP keep-alive listener.
"""

# PingGuard - UDP keep-alive process watchdog
# Copyright (C) 2026 PingGuard Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import asyncio
import logging
import socket
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

from pingguard.config.models import ListenAddress
from pingguard.exceptions import BindError, ReceiverError

logger = logging.getLogger(__name__)


# ── Protocol Types ──────────────────────────────────────────────────

@dataclass(frozen=True)
class Pulse:
    """One liveness signal.  The datagram payload is never kept."""

    received_at: float          # event loop clock
    sender: Any = None
    size: int = 0


class _PulseProtocol(asyncio.DatagramProtocol):
    """Forwards datagram arrivals to the owning :class:`SignalReceiver`."""

    def __init__(self, receiver: SignalReceiver):
        self._receiver = receiver

    def datagram_received(self, data: bytes, addr: Any) -> None:
        self._receiver._on_datagram(len(data), addr)

    def error_received(self, exc: Exception) -> None:
        # ICMP port-unreachable and friends; the socket stays usable
        logger.warning("UDP listener error (ignored): %s", exc)

    def connection_lost(self, exc: Exception | None) -> None:
        self._receiver._on_lost(exc)


# ── Signal Receiver ─────────────────────────────────────────────────

class SignalReceiver:
    """
    Datagram socket whose every inbound packet is a liveness pulse.

    Packets are neither queued nor counted: arrivals between two
    ``next_pulse()`` calls coalesce into a single pulse carrying the most
    recent arrival, which is all a deadline reset needs.
    """

    def __init__(self, address: ListenAddress):
        self.listen_address = address
        self._transport: asyncio.DatagramTransport | None = None
        self._event = asyncio.Event()
        self._latest: Pulse | None = None
        self._lost = False
        self._lost_reason: Exception | None = None
        self._closing = False

    @property
    def is_bound(self) -> bool:
        return self._transport is not None and not self._transport.is_closing()

    @property
    def address(self) -> tuple[str, int] | None:
        """Actual bound (host, port); resolves an ephemeral port 0."""
        if self._transport is None:
            return None
        sockname = self._transport.get_extra_info("sockname")
        return (sockname[0], sockname[1]) if sockname else None

    @property
    def pending(self) -> bool:
        """True when a pulse has arrived and not been consumed yet."""
        return self._latest is not None

    @property
    def lost(self) -> bool:
        return self._lost

    async def start(self) -> SignalReceiver:
        """
        Bind the socket.

        Raises:
            BindError: If the address is in use or otherwise unavailable.
        """
        if self._transport is not None:
            raise RuntimeError("SignalReceiver already started")

        loop = asyncio.get_running_loop()
        family = socket.AF_INET6 if self.listen_address.is_ipv6 else socket.AF_INET
        try:
            transport, _ = await loop.create_datagram_endpoint(
                lambda: _PulseProtocol(self),
                local_addr=self.listen_address.as_tuple(),
                family=family,
            )
        except OSError as e:
            raise BindError(
                f"Failed to bind UDP socket on {self.listen_address}: {e}",
                address=str(self.listen_address),
            ) from e

        self._transport = transport
        logger.info("UDP listener bound on %s", self._format_bound())
        return self

    def _format_bound(self) -> str:
        bound = self.address
        if not bound:
            return str(self.listen_address)
        return str(ListenAddress(host=bound[0], port=bound[1]))

    def _on_datagram(self, size: int, addr: Any) -> None:
        loop = asyncio.get_running_loop()
        self._latest = Pulse(received_at=loop.time(), sender=addr, size=size)
        self._event.set()

    def _on_lost(self, exc: Exception | None) -> None:
        if self._closing:
            return
        logger.error("UDP listener closed unexpectedly: %s", exc)
        self._lost = True
        self._lost_reason = exc
        self._event.set()

    async def next_pulse(self) -> Pulse:
        """
        Wait for the next liveness pulse.

        Returns:
            The most recent pulse received since the previous call.

        Raises:
            ReceiverError: If the socket was lost.
        """
        while True:
            if self._latest is not None:
                pulse, self._latest = self._latest, None
                self._event.clear()
                logger.debug(
                    "Pulse from %s (%d bytes)", pulse.sender, pulse.size,
                )
                return pulse
            if self._lost:
                raise ReceiverError(
                    f"UDP listener on {self.listen_address} lost: {self._lost_reason}"
                )
            self._event.clear()
            await self._event.wait()

    async def pulses(self) -> AsyncIterator[Pulse]:
        """Unbounded stream of pulses for the lifetime of the socket."""
        while True:
            yield await self.next_pulse()

    def close(self) -> None:
        """Release the socket.  Safe to call more than once."""
        if self._transport is None or self._closing:
            return
        self._closing = True
        self._transport.close()
        logger.debug("UDP listener on %s closed", self.listen_address)

    async def __aenter__(self) -> SignalReceiver:
        return await self.start()

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()
