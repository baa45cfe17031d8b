# PingGuard - UDP keep-alive process watchdog
# Copyright (C) 2026 PingGuard Authors
# SPDX-License-Identifier: Apache-2.0

"""Centralized logging configuration for PingGuard.

Uses structlog in stdlib-compatible mode so that plain
``logging.getLogger()`` calls work everywhere while gaining
structured logging capabilities (context binding, JSON output, etc.).

Console output goes to stderr so the supervised child keeps stdout to
itself.

Provides:
- setup_logging(): structlog + stdlib unified setup (console + file)
- bind_watchdog_context() / clear_watchdog_context(): per-run context
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

import structlog


def bind_watchdog_context(**values: object) -> None:
    """Attach key/value pairs (child_pid, listen_addr, ...) to every record."""
    structlog.contextvars.bind_contextvars(**values)


def clear_watchdog_context(*keys: str) -> None:
    """Remove keys previously bound with :func:`bind_watchdog_context`."""
    structlog.contextvars.unbind_contextvars(*keys)


# ── Shared Processors ──────────────────────────────────────────


def _build_shared_processors() -> list:
    """Build the shared processor chain used by both structlog and stdlib."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def _build_file_formatter(
    foreign_pre_chain: list, json_file: bool,
) -> structlog.stdlib.ProcessorFormatter:
    if not json_file:
        return structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.dev.ConsoleRenderer(colors=False),
            ],
            foreign_pre_chain=foreign_pre_chain,
        )

    try:
        import orjson

        def _orjson_serializer(obj: object, **_kw) -> str:  # noqa: ANN001
            return orjson.dumps(obj).decode("utf-8")

        renderer = structlog.processors.JSONRenderer(serializer=_orjson_serializer)
    except ImportError:
        renderer = structlog.processors.JSONRenderer()

    return structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=foreign_pre_chain,
    )


# ── Main Setup ─────────────────────────────────────────────────


def setup_logging(
    level: str = "INFO",
    log_file: Path | None = None,
    json_file: bool = True,
) -> None:
    """Configure logging for the whole watchdog process.

    Args:
        level: Root log level (DEBUG, INFO, WARNING, etc.).
        log_file: Path of a rotating log file. If None, file logging is disabled.
        json_file: Whether to use JSON format for the file handler.
    """
    shared_processors = _build_shared_processors()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()

    # foreign_pre_chain: processes stdlib LogRecords through structlog pipeline
    # so that contextvars (child_pid etc.) and timestamps are merged in.
    foreign_pre_chain = list(shared_processors)

    console_formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.dev.ConsoleRenderer(),
        ],
        foreign_pre_chain=foreign_pre_chain,
    )
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(logging.DEBUG)
    console.setFormatter(console_formatter)
    root.addHandler(console)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,  # 10 MB
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(_build_file_formatter(foreign_pre_chain, json_file))
        root.addHandler(file_handler)

    # asyncio logs every datagram endpoint at DEBUG
    logging.getLogger("asyncio").setLevel(logging.WARNING)
