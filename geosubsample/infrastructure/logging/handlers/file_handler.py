"""Rotating JSON-lines log file."""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from ..formatters import JsonFormatter


class FileHandler(RotatingFileHandler):
    """Size-rotated file receiving every record at DEBUG and above.

    The parent directory is created if needed.
    """

    def __init__(self, filename: str, max_bytes: int = 20 * 1024 * 1024,
                 backup_count: int = 3, encoding: str = 'utf-8'):
        path = Path(filename)
        path.parent.mkdir(parents=True, exist_ok=True)
        super().__init__(str(path), maxBytes=max_bytes, backupCount=backup_count,
                         encoding=encoding)
        self.setFormatter(JsonFormatter())
        self.setLevel(logging.DEBUG)
