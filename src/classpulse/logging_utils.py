"""Structured logging for ClassPulse built on structlog.

Call ``configure_logging`` once at process start (the API does this in
``create_app``); modules obtain loggers through ``create_logger``.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.contextvars import merge_contextvars
from structlog.typing import Processor


def configure_logging(log_level: str = "INFO", log_format: str = "console") -> None:
    """Configure stdlib logging and structlog.

    Args:
        log_level: Level name such as "INFO" or "DEBUG".
        log_format: "json" for one JSON object per line, anything else for the
            human-readable console renderer.
    """
    processors: list[Processor] = [
        merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
    ]
    if log_format.lower() == "json":
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors += [
            structlog.dev.set_exc_info,
            structlog.dev.ConsoleRenderer(colors=False),
        ]

    logging.basicConfig(
        format="%(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
        level=getattr(logging, log_level.upper(), logging.INFO),
        force=True,
    )

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def create_logger(name: str | None = None) -> Any:
    """Return a structlog logger, bound with ``logger_name`` when given.

    The logger stays lazy, so module-level loggers pick up ``configure_logging``
    even when it runs after import.
    """
    if name:
        return structlog.get_logger(logger_name=name)
    return structlog.get_logger()
