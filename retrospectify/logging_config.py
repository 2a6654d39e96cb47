"""Structured logging configuration for Retrospectify.

JSON logs for production, human-readable lines for local development.
Every line written while serving a request is tagged with its correlation
id, the acting user and, on team routes, the team whose board is touched.

Environment Variables:
    LOG_FORMAT: Set to "json" for JSON output, anything else for human-readable.
    LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR). Defaults to INFO.
"""

import copy
import logging
import os
import sys
from contextvars import ContextVar
from typing import Any

from pythonjsonlogger import jsonlogger

# Request-scoped context
_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)
_current_user: ContextVar[str | None] = ContextVar("current_user", default=None)
_team_id: ContextVar[str | None] = ContextVar("team_id", default=None)

LOG_FORMAT = os.getenv("LOG_FORMAT", "").lower()
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Human-readable prefixes shorten ids to this many characters
SHORT_ID_CHARS = 8


def get_correlation_id() -> str | None:
    return _correlation_id.get()


def set_correlation_id(correlation_id: str | None) -> None:
    _correlation_id.set(correlation_id)


def get_current_user() -> str | None:
    return _current_user.get()


def set_current_user(username: str | None) -> None:
    _current_user.set(username)


def get_team_id() -> str | None:
    return _team_id.get()


def set_team_id(team_id: str | None) -> None:
    _team_id.set(team_id)


def clear_request_context() -> None:
    """Reset correlation id, user and team once a request is done."""
    set_correlation_id(None)
    set_current_user(None)
    set_team_id(None)


def request_context_fields() -> dict[str, str]:
    """Context of the request being served, keyed by log field name."""
    fields = {}
    for key, value in (
        ("correlation_id", get_correlation_id()),
        ("user", get_current_user()),
        ("team_id", get_team_id()),
    ):
        if value:
            fields[key] = value
    return fields


class ContextAwareJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter that includes correlation ID, user and team."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = self.formatTime(record, self.datefmt)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["message"] = record.getMessage()
        log_record.update(request_context_fields())


class ContextAwareFormatter(logging.Formatter):
    """Human-readable formatter, e.g. ``[1a2b3c4d] [mia] [team:9f8e7d6c] msg``."""

    def format(self, record: logging.LogRecord) -> str:
        record = copy.copy(record)

        context = request_context_fields()
        context_parts = []
        if "correlation_id" in context:
            context_parts.append(f"[{context['correlation_id'][:SHORT_ID_CHARS]}]")
        if "user" in context:
            context_parts.append(f"[{context['user']}]")
        if "team_id" in context:
            context_parts.append(f"[team:{context['team_id'][:SHORT_ID_CHARS]}]")

        if context_parts:
            record.msg = f"{' '.join(context_parts)} {record.getMessage()}"
            record.args = ()

        return super().format(record)


def setup_logging() -> None:
    """Configure root logging. Call once at application startup."""
    level = getattr(logging, LOG_LEVEL, logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)

    if LOG_FORMAT == "json":
        formatter = ContextAwareJsonFormatter(
            fmt="%(timestamp)s %(level)s %(logger)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
        )
    else:
        formatter = ContextAwareFormatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    logging.getLogger(__name__).info(
        "Logging configured. Format: %s, Level: %s",
        "json" if LOG_FORMAT == "json" else "human-readable",
        LOG_LEVEL,
    )
