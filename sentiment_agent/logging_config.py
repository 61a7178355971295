"""
Centralized logging configuration.
Call setup_logging() early in application startup (CLI / API entrypoints).
"""
import logging
import sys
from pathlib import Path
from datetime import datetime

from .config import settings

LOGS_DIR = Path(__file__).resolve().parents[1] / "logs"


def setup_logging(
    level: str | None = None,
    log_to_file: bool | None = None,
    log_to_console: bool = True,
) -> None:
    """
    Configure application-wide logging.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR); defaults from settings
        log_to_file: Whether to write logs to file; defaults from settings
        log_to_console: Whether to output to console
    """
    if level is None:
        level = settings.log_level or ("DEBUG" if settings.env == "dev" else "INFO")
    if log_to_file is None:
        log_to_file = settings.log_to_file

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    # Clear existing handlers
    root_logger.handlers.clear()

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    if log_to_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    if log_to_file:
        LOGS_DIR.mkdir(exist_ok=True)
        log_file = LOGS_DIR / f"sentiment_{datetime.now():%Y%m%d}.log"
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # Reduce noise from third-party libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
