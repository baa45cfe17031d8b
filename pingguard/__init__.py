# PingGuard - UDP keep-alive process watchdog
# Copyright (C) 2026 PingGuard Authors
# SPDX-License-Identifier: Apache-2.0
"""
PingGuard: launch a child process and keep it alive only while UDP
keep-alive datagrams keep arriving.
"""

from __future__ import annotations

__version__ = "0.2.0"

__all__ = ["__version__"]
