"""Logging configuration for the bot and the CLI."""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional


LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """Install console and optional rotating file handlers on the root logger.

    Parameters
    ----------
    level : str
        Root level name, e.g. ``"INFO"``.
    log_file : str, optional
        Path of a log file rotated at 10 MB with 5 backups.
    """
    root = logging.getLogger()
    root.setLevel(level.upper())
    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)

    for handler in list(root.handlers):
        root.removeHandler(handler)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(path, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    # discord.py is chatty at DEBUG
    logging.getLogger("discord").setLevel(max(root.level, logging.INFO))
