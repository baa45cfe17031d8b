# PingGuard - UDP keep-alive process watchdog
# Copyright (C) 2026 PingGuard Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from pingguard.cli.parser import build_parser, cli_main, parse_config

__all__ = ["build_parser", "cli_main", "parse_config"]
