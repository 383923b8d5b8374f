# CharForge - Character Asset Generation Orchestrator
# Copyright (C) 2026 CharForge Authors
# SPDX-License-Identifier: Apache-2.0
#
# This file is part of CharForge core/server, licensed under Apache-2.0.
# See LICENSE for the full license text.

"""Centralized logging configuration for CharForge.

Uses structlog in stdlib-compatible mode so that plain
``logging.getLogger("charforge.xxx")`` calls pick up whatever context the
server or the orchestrator has bound (request id, session id, phase).

Provides:
- setup_logging(): console + rotating file handlers for the whole process
- bind_request_context(): per-HTTP-request fields, reset on every request
- bind_pipeline_context(): session/phase fields for one pipeline run
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

import orjson
import structlog

LOG_FILE_NAME = "charforge.log"
_MAX_LOG_BYTES = 10 * 1024 * 1024
_LOG_BACKUPS = 5

# Third-party loggers that are chatty at INFO (one line per fal poll, etc.)
_QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "apscheduler")


def bind_request_context(request_id: str, method: str, path: str) -> None:
    """Replace the bound context with the fields of one HTTP request."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        request_id=request_id, method=method, path=path,
    )


def bind_pipeline_context(**fields: object) -> None:
    """Bind pipeline fields (session_id, phase, ...) to subsequent log records."""
    structlog.contextvars.bind_contextvars(**fields)


def _shared_processors() -> list:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def _orjson_serializer(obj: object, **_kw) -> str:  # noqa: ANN001
    return orjson.dumps(obj, default=str).decode("utf-8")


def _formatter(renderer, pre_chain: list) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=pre_chain,
    )


def _file_handler(log_dir: Path, pre_chain: list, json_file: bool) -> logging.Handler:
    log_dir.mkdir(parents=True, exist_ok=True)
    if json_file:
        renderer = structlog.processors.JSONRenderer(serializer=_orjson_serializer)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    handler = RotatingFileHandler(
        log_dir / LOG_FILE_NAME,
        maxBytes=_MAX_LOG_BYTES,
        backupCount=_LOG_BACKUPS,
        encoding="utf-8",
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(_formatter(renderer, pre_chain))
    return handler


def setup_logging(
    level: str = "INFO",
    log_dir: Path | None = None,
    json_file: bool = True,
) -> None:
    """Configure logging for the entire CharForge process.

    Args:
        level: Root log level (DEBUG, INFO, WARNING, etc.).
        log_dir: Directory for ``charforge.log``.  If None, file logging is disabled.
        json_file: Write the file log as JSON lines instead of plain text.
    """
    shared = _shared_processors()

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()

    # stdlib records go through the same chain so contextvars land in them too
    console = logging.StreamHandler()
    console.setLevel(logging.DEBUG)
    console.setFormatter(_formatter(structlog.dev.ConsoleRenderer(), list(shared)))
    root.addHandler(console)

    if log_dir is not None:
        root.addHandler(_file_handler(log_dir, list(shared), json_file))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
