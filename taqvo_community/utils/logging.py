"""
Logging configuration and utilities for Taqvo Community.

Structured logging through structlog on top of stdlib logging, with console
and JSON output formats. Access tokens are never passed as log context.
"""

import logging
import logging.config
import sys
from typing import Any, Dict, Optional

import structlog

# Third-party loggers that are noisy at INFO
QUIET_LOGGERS = ("httpx", "httpcore")


def _logging_config(log_level: int, log_file: Optional[str]) -> Dict[str, Any]:
    handlers = ["stderr"]
    config: Dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "message_only": {"format": "%(message)s"},
        },
        "handlers": {
            "stderr": {
                "class": "logging.StreamHandler",
                "level": log_level,
                "formatter": "message_only",
                "stream": sys.stderr,
            },
        },
        "loggers": {
            "taqvo_community": {"level": log_level, "propagate": False},
        },
        "root": {"level": "WARNING"},
    }

    if log_file:
        config["handlers"]["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": log_level,
            "formatter": "message_only",
            "filename": log_file,
            "maxBytes": 5_000_000,
            "backupCount": 3,
        }
        handlers.append("file")

    for name in QUIET_LOGGERS:
        config["loggers"][name] = {"level": "WARNING", "propagate": False}
    for logger_config in config["loggers"].values():
        logger_config["handlers"] = list(handlers)
    config["root"]["handlers"] = list(handlers)
    return config


def setup_logging(
    level: str = "INFO",
    format_type: str = "console",
    log_file: Optional[str] = None,
) -> None:
    """
    Configure stdlib logging and structlog for the CLI.

    Args:
        level: Logging level name for the taqvo_community loggers
        format_type: 'console' or 'json'
        log_file: Optional rotating log file, rendered in the same format
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.config.dictConfig(_logging_config(log_level, log_file))
    setup_structlog(format_type)


def setup_structlog(format_type: str = "console") -> None:
    """Route structlog through stdlib logging with the chosen renderer."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
    ]

    if format_type == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


def get_logger(name: str, **context) -> Any:
    """
    Get a structured logger with optional bound context.

    Args:
        name: Logger name (usually __name__)
        **context: Key/value pairs included in every line from this logger

    Returns:
        Structured logger
    """
    logger = structlog.get_logger(name)
    if context:
        logger = logger.bind(**context)
    return logger
