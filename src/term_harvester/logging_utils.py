"""Logging helpers shared by the server, the offline harvester and the shell."""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
LOGGER_NAME = "term_harvester"

# Transport and server libraries that drown out job logs at INFO.
NOISY_LOGGERS = ("urllib3", "uvicorn.access", "httpx", "httpcore")


def configure_logging(verbose: bool = False) -> None:
    """Configure root logging once per process and tame chatty libraries."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)
    noisy_level = logging.DEBUG if verbose else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(noisy_level)


def get_logger(component: str | None = None) -> logging.Logger:
    """Return the package logger, or a child logger for one component."""
    if component:
        return logging.getLogger(f"{LOGGER_NAME}.{component}")
    return logging.getLogger(LOGGER_NAME)
