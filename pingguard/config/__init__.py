# PingGuard - UDP keep-alive process watchdog
# Copyright (C) 2026 PingGuard Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from pingguard.config.models import (
    DEFAULT_GRACE_SECS,
    DEFAULT_KILL_CONFIRM_SECS,
    DEFAULT_LISTEN_ADDR,
    DEFAULT_TIMEOUT_SECS,
    ListenAddress,
    WatchdogConfig,
)

__all__ = [
    "DEFAULT_GRACE_SECS",
    "DEFAULT_KILL_CONFIRM_SECS",
    "DEFAULT_LISTEN_ADDR",
    "DEFAULT_TIMEOUT_SECS",
    "ListenAddress",
    "WatchdogConfig",
]
