# PingGuard - UDP keep-alive process watchdog
# Copyright (C) 2026 PingGuard Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from pingguard.cli import cli_main

if __name__ == "__main__":
    cli_main()
