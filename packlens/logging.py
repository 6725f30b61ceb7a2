"""Logging utilities for packlens commands and the cache daemon."""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator

_LOGGER_NAME = "packlens"
_CONSOLE_FORMAT = "[packlens] %(levelname)s %(message)s"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a component logger such as ``packlens.engine`` or ``packlens.daemon``."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Configure the packlens logger with console output and optional file sink.

    Verbose mode enables DEBUG, which carries per-stage analysis timings and
    cache hit/miss decisions.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    # Reset handlers so repeated CLI invocations in one process do not duplicate output.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    stream_handler.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
    logger.addHandler(stream_handler)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(file_handler)

    return logger


class StageTimer:
    """Wall-clock durations, in milliseconds, for the named stages of one analysis."""

    def __init__(self) -> None:
        self.durations: Dict[str, float] = {}

    @contextmanager
    def stage(self, name: str) -> Iterator[None]:
        started = time.perf_counter()
        try:
            yield
        finally:
            self.durations[name] = (time.perf_counter() - started) * 1000

    def summary(self) -> str:
        return ", ".join(f"{name} {elapsed:.1f}ms" for name, elapsed in self.durations.items())


__all__ = ["StageTimer", "configure_logging", "get_logger"]
