"""Logging setup.

Modules log through ``logging.getLogger(__name__)``.  Entry points call
:func:`setup_logging` once; output goes to a file because stdout belongs to
the CLI (and to the assistant's hook protocol when run from a hook).
"""

from __future__ import annotations

import logging
import tempfile
from pathlib import Path

from memvault.config import LoggingConfig

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILENAME = "memvault.log"


def log_file_path(config: LoggingConfig) -> Path:
    log_dir = config.log_dir or Path(tempfile.gettempdir())
    return log_dir / LOG_FILENAME


def setup_logging(config: LoggingConfig) -> Path:
    """Attach a file handler to the ``memvault`` logger and return its path."""
    path = log_file_path(config)
    path.parent.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger("memvault")
    for handler in list(root.handlers):
        if isinstance(handler, logging.FileHandler):
            root.removeHandler(handler)
            handler.close()

    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if config.verbose else logging.INFO)
    return path
