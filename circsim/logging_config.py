"""
Logging policy for circsim.

Library modules only ever call `logging.getLogger(__name__)`; handlers are
attached here, by entry points (cli, scripts). The step loop logs phase
commits once per beat and scheduler overload details once per frame, which
floods a DEBUG console at 500 steps/s. Those loggers are held at INFO unless
per-beat tracing is asked for explicitly.
"""
import logging
import sys
from typing import Optional, Union

PACKAGE_LOGGER = "circsim"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")
DEFAULT_LOG_LEVEL = "WARNING"

# Loggers that emit from inside the physics loop.
STEP_LOOP_LOGGERS = ("circsim.core.sync", "circsim.core.scheduler")

_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def resolve_level(level: Union[int, str]) -> int:
    """Numeric level for a name from LOG_LEVELS (case-insensitive) or a number."""
    if isinstance(level, int):
        return level
    name = level.upper()
    if name not in LOG_LEVELS:
        raise ValueError(f"Unknown log level '{level}' (choose from {', '.join(LOG_LEVELS)})")
    return getattr(logging, name)


def setup_logging(level: Union[int, str] = DEFAULT_LOG_LEVEL, log_file: Optional[str] = None,
                  trace_beats: bool = False) -> logging.Logger:
    """
    Configure the package logger. Safe to call repeatedly; old handlers are closed.

    Args:
        level: Name from LOG_LEVELS or a logging level number
        log_file: Also write records to this file (truncated)
        trace_beats: Let the step-loop loggers through at DEBUG too
    """
    numeric = resolve_level(level)
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(numeric)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)

    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode="w", encoding="utf-8"))
    formatter = logging.Formatter(_FORMAT, datefmt="%H:%M:%S")
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    loop_level = numeric if trace_beats else max(numeric, logging.INFO)
    for name in STEP_LOOP_LOGGERS:
        logging.getLogger(name).setLevel(loop_level)

    logger.debug("Logging at %s%s", logging.getLevelName(numeric),
                 " with per-beat tracing" if trace_beats else "")
    return logger


def reset_logging() -> None:
    """Undo setup_logging(): drop package handlers and per-logger levels."""
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    for name in STEP_LOOP_LOGGERS:
        logging.getLogger(name).setLevel(logging.NOTSET)
