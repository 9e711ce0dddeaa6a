# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

"""Structured logging for redshift_admin, built on structlog."""

import logging
import re
import sys
from typing import Any, Dict

import structlog
from structlog.stdlib import BoundLogger

_PASSWORD_PATTERN = re.compile(r"(PASSWORD\s+)'(?:[^']|'')*'", re.IGNORECASE)


def redact_sql(sql: str) -> str:
    """Replace quoted password literals in a statement with a placeholder."""
    return _PASSWORD_PATTERN.sub(r"\1'***'", sql)


def _redact_statements(_logger: Any, _method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    sql = event_dict.get("sql")
    if isinstance(sql, str):
        event_dict["sql"] = redact_sql(sql)
    return event_dict


def configure_logging(level: str = "INFO", json: bool = False) -> None:
    """
    Configure structlog on top of the standard logging module.

    Args:
        level: Minimum level name, e.g. "DEBUG"
        json: Render events as JSON lines instead of the console format
    """
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level.upper())

    renderer = structlog.processors.JSONRenderer() if json else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            _redact_statements,
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> BoundLogger:
    return structlog.get_logger(name)
