"""Logging configuration and prefixed engine loggers."""
from __future__ import annotations

import logging
import os
from typing import Any, MutableMapping, Optional, Tuple, Union

from rich.console import Console
from rich.logging import RichHandler

LOG_LEVEL_ENV = "NETDIAG_LOG_LEVEL"
DEFAULT_LOG_LEVEL = "WARNING"

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

EngineLogger = Union[logging.Logger, logging.LoggerAdapter]


class PrefixedLogger(logging.LoggerAdapter):
    """Prepend ``[prefix]`` to every message, e.g. ``[NetworkDiagnostics]``."""

    def __init__(self, logger: logging.Logger, prefix: str) -> None:
        super().__init__(logger, {"prefix": prefix})
        self.prefix = prefix

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> Tuple[Any, MutableMapping[str, Any]]:
        return f"[{self.prefix}] {msg}", kwargs


def prefixed(logger: Optional[EngineLogger], prefix: str) -> PrefixedLogger:
    """Wrap an injected logger (or the package logger) with *prefix*."""
    if logger is None:
        logger = logging.getLogger("netdiag")
    if isinstance(logger, logging.LoggerAdapter):
        logger = logger.logger
    return PrefixedLogger(logger, prefix)


def resolve_level(level: Optional[str] = None) -> int:
    """Map a level name (or ``$NETDIAG_LOG_LEVEL``) to a logging constant."""
    name = (level or os.environ.get(LOG_LEVEL_ENV, DEFAULT_LOG_LEVEL)).upper()
    return _LEVELS.get(name, logging.WARNING)


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure application-wide logging for the CLI.

    Log lines go to stderr through ``rich`` so they never interleave with
    JSON written to stdout.

    Environment Variables:
        NETDIAG_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR or CRITICAL.
                           Default is WARNING.
    """
    log_level = resolve_level(level)

    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        datefmt="%H:%M:%S",
        handlers=[
            RichHandler(
                console=Console(stderr=True),
                show_path=False,
                rich_tracebacks=True,
            )
        ],
        force=True,
    )

    logging.getLogger(__name__).debug(
        "Logging configured: level=%s", logging.getLevelName(log_level)
    )
