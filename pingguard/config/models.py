# PingGuard - UDP keep-alive process watchdog
# Copyright (C) 2026 PingGuard Authors
# SPDX-License-Identifier: Apache-2.0

"""Configuration models for PingGuard.

Defines immutable Pydantic models for the validated watchdog configuration
and the helpers that turn raw command-line text into them.  The supervision
core only ever sees a fully validated :class:`WatchdogConfig`.
"""

from __future__ import annotations

import ipaddress
import math
import os
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from pingguard.exceptions import ConfigError

DEFAULT_LISTEN_ADDR = "0.0.0.0:12345"
DEFAULT_TIMEOUT_SECS = 5.0
DEFAULT_GRACE_SECS = 0.0
DEFAULT_KILL_CONFIRM_SECS = 0.1

# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------


class ListenAddress(BaseModel):
    """UDP socket address the keep-alive listener binds to."""

    model_config = ConfigDict(frozen=True)

    host: str
    port: int

    @field_validator("host")
    @classmethod
    def _check_host(cls, value: str) -> str:
        if not value:
            raise ValueError("host must not be empty")
        return value

    @field_validator("port")
    @classmethod
    def _check_port(cls, value: int) -> int:
        if not 0 <= value <= 65535:
            raise ValueError(f"port {value} out of range 0-65535")
        return value

    @property
    def is_ipv6(self) -> bool:
        try:
            return ipaddress.ip_address(self.host).version == 6
        except ValueError:
            return False

    def as_tuple(self) -> tuple[str, int]:
        return (self.host, self.port)

    def __str__(self) -> str:
        if self.is_ipv6:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"

    @classmethod
    def parse(cls, text: str) -> ListenAddress:
        """Parse ``ip:port``, ``[ipv6]:port`` or ``hostname:port``.

        Raises:
            ConfigError: If the text is not a valid socket address.
        """
        text = text.strip()
        if text.startswith("["):
            host, sep, rest = text[1:].partition("]")
            if not sep or not rest.startswith(":"):
                raise ConfigError(f"Invalid listen address '{text}': expected [IPv6]:PORT")
            port_text = rest[1:]
            try:
                if ipaddress.ip_address(host).version != 6:
                    raise ConfigError(f"Invalid listen address '{text}': brackets require IPv6")
            except ValueError as e:
                raise ConfigError(f"Invalid listen address '{text}': {e}") from e
        else:
            host, sep, port_text = text.rpartition(":")
            if not sep:
                raise ConfigError(f"Invalid listen address '{text}': expected IP:PORT")
            if ":" in host:
                raise ConfigError(
                    f"Invalid listen address '{text}': IPv6 hosts must be bracketed"
                )

        try:
            port = int(port_text)
        except ValueError as e:
            raise ConfigError(f"Invalid listen address '{text}': bad port '{port_text}'") from e

        try:
            return cls(host=host, port=port)
        except ValidationError as e:
            raise ConfigError(f"Invalid listen address '{text}': {_first_error(e)}") from e


class WatchdogConfig(BaseModel):
    """Validated configuration consumed by the supervision loop."""

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    listen_address: ListenAddress
    timeout: float = DEFAULT_TIMEOUT_SECS
    command: str
    args: tuple[str, ...] = ()
    grace_period: float = DEFAULT_GRACE_SECS
    kill_confirm: float = DEFAULT_KILL_CONFIRM_SECS

    @field_validator("timeout")
    @classmethod
    def _check_timeout(cls, value: float) -> float:
        if not math.isfinite(value) or value <= 0:
            raise ValueError("timeout must be a finite number of seconds greater than 0")
        return value

    @field_validator("grace_period", "kill_confirm")
    @classmethod
    def _check_non_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError("must not be negative")
        return value

    @model_validator(mode="after")
    def _check_command(self) -> WatchdogConfig:
        if not self.command:
            raise ValueError("child executable path must not be empty")
        return self

    @classmethod
    def from_values(
        cls,
        *,
        listen_addr: str,
        timeout_secs: Any,
        command: str,
        args: list[str] | tuple[str, ...] = (),
        grace_secs: Any = DEFAULT_GRACE_SECS,
        kill_confirm_secs: Any = DEFAULT_KILL_CONFIRM_SECS,
    ) -> WatchdogConfig:
        """Build a config from raw CLI / environment values.

        Raises:
            ConfigError: If any value is invalid.
        """
        address = ListenAddress.parse(str(listen_addr))
        try:
            return cls(
                listen_address=address,
                timeout=timeout_secs,
                command=os.fspath(command),
                args=tuple(args),
                grace_period=grace_secs,
                kill_confirm=kill_confirm_secs,
            )
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {_first_error(e)}") from e


def _first_error(exc: ValidationError) -> str:
    err = exc.errors()[0]
    loc = ".".join(str(part) for part in err.get("loc", ()))
    msg = err.get("msg", str(exc))
    return f"{loc}: {msg}" if loc else msg
