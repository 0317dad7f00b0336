# flowdiff/utils/logger.py
from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler

ROOT_LOGGER = "flowdiff"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# (threshold, ANSI color), checked from most to least severe
_COLORS = (
    (logging.ERROR, "\033[91m"),    # red
    (logging.WARNING, "\033[93m"),  # yellow
    (logging.INFO, "\033[92m"),     # green
)


def _parse_level(value: str | int | None, default: int = logging.INFO) -> int:
    """Accept 'debug', 'WARNING', 10, ...; unknown names fall back to default."""
    if isinstance(value, int):
        return value
    if not value:
        return default
    level = logging.getLevelName(value.strip().upper())
    return level if isinstance(level, int) else default


class _ColorFormatter(logging.Formatter):
    """Colors whole lines by severity, only when stderr is a terminal."""

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        if not sys.stderr.isatty():
            return base
        for threshold, color in _COLORS:
            if record.levelno >= threshold:
                return f"{color}{base}\033[0m"
        return base


def init_logger(
    level: str | int | None = None,
    log_dir: str | Path | None = None,
    file_name: str = "flowdiff.log",
    file_max_mb: int = 5,
    file_backup: int = 3,
) -> logging.Logger:
    """
    Configure the flowdiff root logger:
      - level from the argument, else LOG_LEVEL, else INFO
      - colored handler on stderr; stdout stays free for CLI output
      - rotating file handler when log_dir or FLOWDIFF_LOG_DIR is set
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.handlers.clear()
    logger.propagate = False
    logger.setLevel(_parse_level(level if level is not None else os.getenv("LOG_LEVEL")))

    sh = logging.StreamHandler(sys.stderr)
    sh.setFormatter(_ColorFormatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(sh)

    log_dir = log_dir or os.getenv("FLOWDIFF_LOG_DIR")
    if log_dir:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        fh = RotatingFileHandler(
            filename=str(log_dir / file_name),
            maxBytes=file_max_mb * 1024 * 1024,
            backupCount=file_backup,
            encoding="utf-8",
        )
        fh.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(fh)

    return logger


def set_level(level: str | int) -> None:
    """Change the level of the whole flowdiff logger tree at runtime."""
    logging.getLogger(ROOT_LOGGER).setLevel(_parse_level(level))


log = init_logger()


def get_logger(child: str) -> logging.Logger:
    """Create/get a child logger under the root project logger."""
    return logging.getLogger(ROOT_LOGGER).getChild(child)
