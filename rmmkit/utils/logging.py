"""Structured logging for action runs: structlog events routed through stdlib handlers."""

import logging
import os
import socket
import sys
import uuid
from logging.handlers import RotatingFileHandler

import structlog

LOG_FILE_NAME = "rmmkit.log"


def setup_logging(
    debug: bool = False,
    log_dir: str = "logs",
    log_max_bytes: int = 5_000_000,
    log_backup_count: int = 3,
) -> None:
    """Configure structured logging for an action run.

    Events go to stdout, which the RMM console captures, and to a rotating
    file on the endpoint when the log directory is writable. JSON lines by
    default; ``debug`` switches to the human-readable console renderer.
    """
    log_level = logging.DEBUG if debug else logging.INFO

    renderer = [structlog.dev.ConsoleRenderer()] if debug else [
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ]
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            *renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter("%(message)s")
    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setLevel(log_level)
    stdout_handler.setFormatter(formatter)
    root_logger.addHandler(stdout_handler)

    try:
        os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(log_dir, LOG_FILE_NAME),
            maxBytes=log_max_bytes,
            backupCount=log_backup_count,
            encoding="utf-8",
        )
    except OSError as e:
        root_logger.warning("log file disabled: %s", e)
        return
    file_handler.setLevel(log_level)
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)


def bind_run_context(group: str, command: str) -> str:
    """Tag every event of this run with host, command and a run id. Returns the run id."""
    run_id = uuid.uuid4().hex[:12]
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        run_id=run_id,
        host=socket.gethostname(),
        command=f"{group} {command}",
    )
    return run_id


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a named structured logger."""
    return structlog.get_logger(name)
