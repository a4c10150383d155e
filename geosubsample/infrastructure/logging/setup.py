"""Root logger configuration from the ``logging`` config section."""

import logging
import sys
from pathlib import Path
from typing import Any, Optional, Union

from .handlers import ConsoleHandler, FileHandler
from .structured_logger import get_logger, run_context


def setup_logging(config: Any,
                  run_id: Optional[str] = None,
                  log_file: Optional[Union[str, Path]] = None,
                  console: bool = True,
                  log_level: Optional[str] = None):
    """Replace the root handlers with a console and an optional JSON file handler.

    Args:
        config: Config object (or anything with a dot-notation ``get``)
        run_id: Run id to tag records with outside a LoggingContext
        log_file: JSON log file; when omitted one is only written if
            ``logging.file_enabled`` is set, under ``paths.logs_dir``
        console: Attach the human readable stderr handler
        log_level: Overrides ``logging.level``
    """
    level_name = (log_level or config.get('logging.level', 'INFO')).upper()
    level = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    if console:
        handler = ConsoleHandler(use_colors=sys.stderr.isatty())
        handler.setLevel(level)
        root.addHandler(handler)

    if log_file is None and config.get('logging.file_enabled', False):
        log_file = Path(config.get('paths.logs_dir', 'logs')) / config.get('logging.file_name', 'geosubsample.log')

    if log_file is not None:
        root.addHandler(FileHandler(
            str(log_file),
            max_bytes=config.get('logging.max_file_size', 20 * 1024 * 1024),
            backup_count=config.get('logging.backup_count', 3)
        ))

    if run_id:
        run_context.set(run_id)

    get_logger(__name__).debug(
        f"Logging configured at {level_name}",
        extra={'context': {'console': console, 'log_file': str(log_file) if log_file else None}}
    )
