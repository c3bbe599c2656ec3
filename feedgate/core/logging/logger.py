#!/usr/bin/env python3
"""
Structured Logging Module using structlog

This module provides structured logging for the gateway with:
- Operation ID correlation across queue, guard and cache layers
- Stage identifiers for execution flow
- JSON formatting for log aggregation
- Automatic redaction of bearer and OAuth tokens

Architectural Decision: structlog for production logging
- Context-aware logging with automatic field injection
- JSON output for log aggregation
- Async-safe via context variables
"""

import logging
import re
import sys
from contextvars import ContextVar
from datetime import datetime, timezone

import structlog
from structlog.types import EventDict, WrappedLogger

from feedgate.core.config.settings import get_settings

# Context variable for operation ID (task-local under asyncio)
operation_id_ctx: ContextVar[str | None] = ContextVar("operation_id", default=None)

_BEARER_PATTERN = re.compile(r"\bBearer\s+[A-Za-z0-9._~+/=-]+", re.IGNORECASE)
_TOKEN_FIELD_PATTERN = re.compile(r"\b(access_token|refresh_token)([=:]\s*)[^\s&,;\"']+")
_SECRET_KEYS = frozenset({"access_token", "refresh_token", "authorization", "client_secret"})


def add_operation_id(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Add operation ID to log event from context variable.

    STAGE-L.1: Operation ID injection
    """
    operation_id = operation_id_ctx.get()
    if operation_id:
        event_dict["operation_id"] = operation_id
    return event_dict


def add_timestamp(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Add ISO timestamp to log event.

    STAGE-L.2: Timestamp injection
    """
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    return event_dict


def redact_secrets(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Redact credentials from log messages and fields.

    STAGE-L.3: Secret redaction

    Patterns redacted:
    - "Bearer <token>" → "Bearer [REDACTED]"
    - access_token=<v> / refresh_token=<v> → [REDACTED]
    - Any field named access_token, refresh_token, authorization, client_secret
    """
    message = event_dict.get("event", "")

    if isinstance(message, str):
        message = _BEARER_PATTERN.sub("Bearer [REDACTED]", message)
        message = _TOKEN_FIELD_PATTERN.sub(r"\1\2[REDACTED]", message)
        event_dict["event"] = message

    for key in list(event_dict):
        if key.lower() in _SECRET_KEYS and event_dict[key]:
            event_dict[key] = "[REDACTED]"

    return event_dict


def add_log_level_name(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Uppercase the level field.

    STAGE-L.4: Log level injection
    """
    if "level" in event_dict:
        event_dict["level"] = event_dict["level"].upper()
    return event_dict


def setup_logging(log_level: str | None = None, log_format: str | None = None) -> None:
    """
    Setup structured logging with structlog.

    STAGE-L: Logging initialization

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Log format ('json' or 'console')
    """
    settings = get_settings()

    log_level = log_level or settings.logging.LOG_LEVEL
    log_format = log_format or settings.logging.LOG_FORMAT

    logging.basicConfig(
        format="%(message)s", stream=sys.stdout, level=getattr(logging, log_level.upper())
    )

    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_operation_id,
            add_timestamp,
            structlog.stdlib.add_log_level,
            add_log_level_name,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            redact_secrets,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Usage:
        logger = get_logger(__name__)
        logger.info("message", key="value", stage=Stage.QUEUE_EXECUTE)
    """
    return structlog.get_logger(name)


def set_operation_id(operation_id: str) -> None:
    """Set the operation ID for log correlation in the current context."""
    operation_id_ctx.set(operation_id)


def get_operation_id() -> str | None:
    """Get current operation ID from context."""
    return operation_id_ctx.get()


def clear_operation_id() -> None:
    """Clear operation ID from context."""
    operation_id_ctx.set(None)


def log_stage(
    logger: structlog.stdlib.BoundLogger, stage: str, message: str, level: str = "info", **kwargs
) -> None:
    """
    Log a message with stage information.

    Args:
        logger: Logger instance
        stage: Stage identifier (e.g., Stage.AUTH_REFRESH)
        message: Log message
        level: Log level (debug, info, warning, error, critical)
        **kwargs: Additional fields to log

    Usage:
        log_stage(logger, Stage.CACHE_L1_LOOKUP, "L1 cache hit", object_id="123")
    """
    log_func = getattr(logger, level.lower())
    stage_value = stage.value if hasattr(stage, "value") else stage
    log_func(message, stage=stage_value, **kwargs)
