"""Structured logging for the MCP tool server.

All modules log through structlog with key/value events. Values under
token-bearing keys are masked before rendering, and the JSON-RPC request
being served is bound to every event emitted while it is handled.
"""

import logging
import sys
from contextlib import contextmanager
from typing import Any, Iterator

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

# Event keys whose values must never reach the logs in clear text
SENSITIVE_KEYS = {"access_token", "refresh_token", "client_secret", "authorization", "server_token"}

# Standard-library loggers that would otherwise echo provider URLs at INFO
NOISY_LOGGERS = ("httpx", "httpcore")


def mask_value(value: Any, keep: int = 4) -> Any:
    """Mask all but the last ``keep`` characters of a string."""
    if not isinstance(value, str) or not value:
        return value
    if len(value) <= keep:
        return "*" * len(value)
    return "*" * (len(value) - keep) + value[-keep:]


def mask_secrets(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """structlog processor masking token-bearing values."""
    for key in list(event_dict):
        if key.lower() in SENSITIVE_KEYS:
            event_dict[key] = mask_value(event_dict[key])
    return event_dict


def setup_logging(log_level: str = "INFO", json_output: bool = False) -> None:
    """
    Configure structlog and the standard library root logger.

    Args:
        log_level: Minimum level name, e.g. "INFO"
        json_output: JSON lines for production, colored console otherwise
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        mask_secrets,
    ]
    if json_output:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # uvicorn logs through the standard library
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def get_logger(name: str | None = None, **initial_context: Any) -> structlog.BoundLogger:
    """Logger for a module, optionally pre-bound with context."""
    logger = structlog.get_logger(name)
    return logger.bind(**initial_context) if initial_context else logger


@contextmanager
def request_context(**context: Any) -> Iterator[None]:
    """
    Bind JSON-RPC request fields to every event logged inside the block.

    Example:
        with request_context(rpc_id=1, method="tools/call", user="u1"):
            ...
    """
    with structlog.contextvars.bound_contextvars(**context):
        yield
