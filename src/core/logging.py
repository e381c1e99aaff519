"""Structured logging for the agent.

stdout is reserved for JSON reports, so every log line (including the
decision log) goes to stderr through one structlog ``ProcessorFormatter``.
"""

from __future__ import annotations

import logging
import os
import socket
import sys
from typing import Any

import structlog

from src.core.config import get_settings

# boto3/httpx stacks log every request at INFO.
_THIRD_PARTY_LOGGERS = ("botocore", "boto3", "urllib3", "httpx", "httpcore", "aiohttp")


def _renderer(fmt: str) -> structlog.types.Processor:
    if fmt == "console":
        return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    return structlog.processors.JSONRenderer()


def setup_logging(level: str | None = None, fmt: str | None = None) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        level: Log level override (e.g. "DEBUG"). Uses config if None.
        fmt: Renderer format override ("json" or "console"). Uses config if None.
    """
    settings = get_settings().logging
    log_level = logging.getLevelName((level or settings.level).upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(fmt or settings.format),
        ],
    ))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(log_level)

    third_party_level = max(log_level, logging.WARNING)
    for name in _THIRD_PARTY_LOGGERS:
        logging.getLogger(name).setLevel(third_party_level)


def bind_agent_context(**values: Any) -> None:
    """Attach host identity (and any extra keys) to every subsequent log line."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        host=socket.gethostname(),
        pid=os.getpid(),
        **values,
    )
