"""Logging and tracing setup for the matching service."""

from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler

from studybuddy.config import config


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LOG_MAX_BYTES = 2_000_000
LOG_BACKUP_COUNT = 5

# Client libraries that log every RPC at DEBUG.
NOISY_LOGGERS = ("google.auth", "urllib3", "grpc", "httpx", "openai")


def _file_handler(path: str, formatter: logging.Formatter) -> logging.Handler:
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    handler = RotatingFileHandler(
        path, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUP_COUNT
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(formatter)
    return handler


def setup_logging(*, debug: bool = False, log_file: str | None = None) -> None:
    """Route all service logs to stdout and, unless disabled, a rotating file.

    ``log_file`` defaults to ``config.LOG_FILE``; an empty value keeps logs on
    stdout only. Calling this again replaces the previous handlers.
    """

    path = config.LOG_FILE if log_file is None else log_file
    formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(logging.DEBUG if debug else logging.INFO)
    console.setFormatter(formatter)

    handlers: list[logging.Handler] = [console]
    if path:
        handlers.append(_file_handler(path, formatter))

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def setup_langsmith() -> bool:
    """Export LangSmith tracing variables for LangGraph runs.

    Returns True when tracing was switched on.
    """

    if not (config.LANGSMITH_ENABLED and config.LANGSMITH_API_KEY):
        return False

    os.environ["LANGCHAIN_TRACING_V2"] = "true"
    os.environ["LANGCHAIN_API_KEY"] = config.LANGSMITH_API_KEY
    os.environ["LANGCHAIN_PROJECT"] = config.LANGSMITH_PROJECT

    try:
        from langsmith import Client

        Client()
    except Exception as exc:
        logger.warning("LangSmith client could not start, traces may be lost: %s", str(exc))
        return False

    logger.info("LangSmith tracing enabled for project %s", config.LANGSMITH_PROJECT)
    return True


logger = logging.getLogger("studybuddy")
