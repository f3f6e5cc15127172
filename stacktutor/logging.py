"""Logging utilities for stacktutor commands and background jobs.

Every module logs under the ``stacktutor`` hierarchy (``stacktutor.jobs``,
``stacktutor.orchestrator``, ...). Job work runs on ``stacktutor-job``
worker threads, so the file sink records the thread name to keep
interleaved runs apart.
"""

from __future__ import annotations

import logging
from pathlib import Path

_LOGGER_NAME = "stacktutor"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the stacktutor hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Configure the stacktutor logger with console output and an optional file sink.

    The console handler prints ``[stacktutor] LEVEL message``. With
    ``verbose`` the level drops to DEBUG, which also surfaces job failure
    tracebacks and skipped-file notes. Calling it again replaces the
    handlers installed by an earlier call.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    # Reset handlers so repeated CLI invocations in one process do not duplicate output.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    stream_handler.setFormatter(logging.Formatter("[stacktutor] %(levelname)s %(message)s"))
    logger.addHandler(stream_handler)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s [%(threadName)s]: %(message)s")
        )
        logger.addHandler(file_handler)

    return logger


__all__ = ["configure_logging", "get_logger"]
