"""
Logging setup shared by the API process and scripts.

Console handler always; a daily rotating file handler when a log
directory is configured.

Usage:
    from shipledger.core.logging import setup_logging
    setup_logging("INFO")
    logger = logging.getLogger(__name__)
"""

import logging
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_BACKUP_COUNT = 7

NOISY_LOGGERS = [
    "sqlalchemy.engine",
    "uvicorn.access",
    "httpx",
    "httpcore",
]


def setup_logging(
    level: str | int = logging.INFO,
    log_dir: Path | None = None,
    process_name: str = "shipledger",
) -> logging.Logger:
    """
    Configure the root logger. Safe to call more than once: handlers
    installed by a previous call are replaced.

    Args:
        level: root log level
        log_dir: directory for `<process_name>.log`; no file output when None
        process_name: log file base name

    Returns:
        The configured root logger.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in list(root_logger.handlers):
        if getattr(handler, "_shipledger", False):
            root_logger.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler._shipledger = True
    root_logger.addHandler(console_handler)

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = TimedRotatingFileHandler(
            filename=log_dir / f"{process_name}.log",
            when="midnight",
            interval=1,
            backupCount=LOG_FILE_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.suffix = "%Y-%m-%d"
        file_handler.setFormatter(formatter)
        file_handler._shipledger = True
        root_logger.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root_logger.info(
        "Logging initialised for %s (level=%s, file=%s)",
        process_name,
        logging.getLevelName(root_logger.level),
        log_dir / f"{process_name}.log" if log_dir else "disabled",
    )
    return root_logger
