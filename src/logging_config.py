"""
Centralized logging configuration for the chapter script pipeline.

Library modules only ever call `logging.getLogger(__name__)`; handlers are
attached here, by entry points, to the script's own logger and to the package
roots listed in PIPELINE_LOGGERS.

Log levels:
    DEBUG: Prompts, raw generative responses, per-unit narration cuts
    INFO: Normal workflow progress (chapter phases, scene counts, saves)
    WARNING: Non-fatal issues (segmenter fallback, narration repair, failed scenes)
    ERROR: Batch-level failures (credit gate, persistence)

Usage:
    from logging_config import setup_logging, setup_pipeline_logging

    logger = setup_logging(__name__)
    setup_pipeline_logging(log_file=Path("output/logs/run.log"))
"""

import logging
import sys
from pathlib import Path
from typing import Iterable, List, Optional

# Package roots whose modules report pipeline progress
PIPELINE_LOGGERS = ("script_pipeline", "util")

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def build_handlers(
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
    console_output: bool = True
) -> List[logging.Handler]:
    """
    Create console and/or file handlers sharing the pipeline log format.

    Args:
        level: Handler level
        log_file: Optional path to append logs to (parent dirs are created)
        console_output: Whether to include a stdout handler

    Returns:
        Handlers in (console, file) order, omitting disabled ones
    """
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    handlers: List[logging.Handler] = []

    if console_output:
        handlers.append(logging.StreamHandler(sys.stdout))

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, mode='a', encoding='utf-8'))

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
    return handlers


def _attach(logger: logging.Logger, level: int, handlers: Iterable[logging.Handler]) -> logging.Logger:
    logger.setLevel(level)
    # Reconfiguring replaces handlers instead of stacking duplicates
    logger.handlers.clear()
    for handler in handlers:
        logger.addHandler(handler)
    return logger


def setup_logging(
    name: str,
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
    console_output: bool = True
) -> logging.Logger:
    """
    Configure and return a logger for an entry-point script.

    Args:
        name: Logger name (typically __name__ from calling module)
        level: Logging level (default: INFO)
        log_file: Optional path to write logs to file
        console_output: Whether to output to console (default: True)

    Returns:
        Configured logger instance
    """
    return _attach(logging.getLogger(name), level, build_handlers(level, log_file, console_output))


def setup_pipeline_logging(
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
    extra_loggers: Iterable[str] = ()
) -> List[logging.Handler]:
    """
    Route every pipeline package logger (plus `extra_loggers`) to one set of handlers.

    A single file handler is shared, so a run log holds segmentation, narration,
    scene and batch messages in order.

    Args:
        level: Logging level (default: INFO)
        log_file: Optional run log path
        extra_loggers: Additional logger names, e.g. the calling script's

    Returns:
        The shared handlers (callers close them when the run ends)
    """
    handlers = build_handlers(level, log_file)
    for name in (*PIPELINE_LOGGERS, *extra_loggers):
        logger = _attach(logging.getLogger(name), level, handlers)
        logger.propagate = False
    return handlers
