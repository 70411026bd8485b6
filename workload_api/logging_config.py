"""Process-wide logging setup shared by the API, repositories and the refresh job."""
from __future__ import annotations

import logging
import os
import sys
import threading
from typing import Dict, Optional

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%H:%M:%S"

LEVEL_COLORS: Dict[int, str] = {
    logging.DEBUG: "\x1b[36m",
    logging.INFO: "\x1b[32m",
    logging.WARNING: "\x1b[33m",
    logging.ERROR: "\x1b[31m",
    logging.CRITICAL: "\x1b[31;1m",
}
RESET = "\x1b[0m"

# Third-party loggers that are noisy at INFO.
QUIET_LOGGERS = ("apscheduler.scheduler", "apscheduler.executors.default", "uvicorn.access")

_setup_lock = threading.Lock()
_configured = False


class LevelColorFormatter(logging.Formatter):
    """Wraps each record in its level's ANSI color."""

    def __init__(self, fmt: str = LOG_FORMAT, datefmt: str = DATE_FORMAT):
        super().__init__(fmt, datefmt=datefmt)

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        color = LEVEL_COLORS.get(record.levelno)
        return f"{color}{text}{RESET}" if color else text


def _use_color() -> bool:
    setting = os.getenv("LOG_COLOR")
    if setting is not None:
        return setting.strip().lower() in {"1", "true", "yes", "on"}
    return sys.stdout.isatty()


def configure_logging(level: Optional[str] = None) -> None:
    """Install a single stdout handler on the root logger. Later calls are no-ops."""
    global _configured

    with _setup_lock:
        if _configured:
            return

        level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
        root = logging.getLogger()
        root.setLevel(getattr(logging, level_name, logging.INFO))

        # Drop handlers installed by earlier basicConfig calls or by uvicorn.
        for existing in list(root.handlers):
            root.removeHandler(existing)

        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(
            LevelColorFormatter() if _use_color() else logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
        )
        root.addHandler(handler)

        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

        _configured = True


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Module logger; configures logging on first use."""

    if not _configured:
        configure_logging()
    return logging.getLogger(name)
