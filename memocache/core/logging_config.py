"""Unified logging configuration for memocache consumers.

Library modules only ever call ``logging.getLogger(__name__)``; they never
attach handlers. Applications and test harnesses that want memocache output
use this module to wire handlers in one consistent format.

Usage:
    from memocache.core.logging_config import setup_logging, LogContext

    logger = setup_logging("memocache", level="DEBUG", log_dir="logs")

    with LogContext(logger, logging.WARNING):
        ...  # quiet section
"""

from __future__ import annotations

import logging
from pathlib import Path

__all__ = [
    "COMPACT_FORMAT",
    "DEFAULT_FORMAT",
    "DETAILED_FORMAT",
    "STRUCTURED_FORMAT",
    "LogContext",
    "configure_third_party_loggers",
    "get_logger",
    "setup_logging",
]

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
COMPACT_FORMAT = "%(levelname)s %(name)s: %(message)s"
DETAILED_FORMAT = (
    "%(asctime)s [%(levelname)s] %(name)s (%(threadName)s) "
    "%(filename)s:%(lineno)d: %(message)s"
)
STRUCTURED_FORMAT = (
    '{"time": "%(asctime)s", "level": "%(levelname)s", '
    '"logger": "%(name)s", "message": "%(message)s"}'
)
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_FORMATS = {
    "default": DEFAULT_FORMAT,
    "compact": COMPACT_FORMAT,
    "detailed": DETAILED_FORMAT,
    "structured": STRUCTURED_FORMAT,
}

# Packages that log chattily at INFO and are quieted by default
NOISY_PACKAGES = ("urllib3", "asyncio", "filelock", "prometheus_client")


def _resolve_level(level: int | str) -> int:
    if isinstance(level, str):
        return logging.getLevelName(level.upper())
    return level


def setup_logging(
    name: str,
    level: int | str = logging.INFO,
    log_file: str | Path | None = None,
    log_dir: str | Path | None = None,
    console: bool = True,
    format_style: str = "default",
    propagate: bool = False,
) -> logging.Logger:
    """Configure and return a named logger.

    Calling this twice for the same name returns the same logger without
    attaching duplicate handlers.

    Args:
        name: Logger name
        level: Level as int or name ("DEBUG", "INFO", ...)
        log_file: Explicit log file path
        log_dir: Directory for ``<name>.log`` when log_file is not given
        console: Attach a stderr StreamHandler
        format_style: One of default/compact/detailed/structured; unknown
            styles fall back to default
        propagate: Whether records propagate to ancestor loggers

    Returns:
        The configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(_resolve_level(level))
    logger.propagate = propagate

    formatter = logging.Formatter(
        _FORMATS.get(format_style, DEFAULT_FORMAT), datefmt=DATE_FORMAT
    )

    if console and not any(
        type(h) is logging.StreamHandler for h in logger.handlers
    ):
        handler = logging.StreamHandler()
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    if log_file is None and log_dir is not None:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        log_file = log_path / f"{name}.log"

    if log_file is not None:
        target = str(Path(log_file).resolve())
        if not any(
            isinstance(h, logging.FileHandler) and h.baseFilename == target
            for h in logger.handlers
        ):
            Path(target).parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(target)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return the logger for ``name`` (no handler changes)."""
    return logging.getLogger(name)


def configure_third_party_loggers(
    quiet: bool = True,
    verbose_packages: list[str] | None = None,
) -> None:
    """Raise noisy third-party loggers to WARNING.

    Args:
        quiet: When False this is a no-op
        verbose_packages: Packages to leave at their current level
    """
    if not quiet:
        return
    keep = set(verbose_packages or ())
    for package in NOISY_PACKAGES:
        if package not in keep:
            logging.getLogger(package).setLevel(logging.WARNING)


class LogContext:
    """Temporarily change a logger's level; restored on exit, even on error."""

    def __init__(self, logger: logging.Logger, level: int | str):
        self.logger = logger
        self.level = _resolve_level(level)
        self._previous: int | None = None

    def __enter__(self) -> logging.Logger:
        self._previous = self.logger.level
        self.logger.setLevel(self.level)
        return self.logger

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._previous is not None:
            self.logger.setLevel(self._previous)
