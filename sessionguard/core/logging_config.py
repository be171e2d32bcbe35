# sessionguard/core/logging_config.py
"""Root logging for the API process: console plus a rotating file"""

import os
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_FILE_NAME = 'sessionguard.log'
MAX_LOG_BYTES = 5 * 1024 * 1024
LOG_BACKUPS = 5

# Client libraries that log every request at INFO
QUIET_LOGGERS = ("uvicorn.access", "redis", "httpx", "httpcore")


def setup_logging() -> logging.Logger:
    """
    Configure the root logger from LOG_LEVEL and LOG_DIR.

    Safe to call more than once: handlers are only attached if missing.
    """
    root = logging.getLogger()
    root.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())
    formatter = logging.Formatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')

    log_dir = Path(os.getenv("LOG_DIR", "logs"))
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = str((log_dir / LOG_FILE_NAME).resolve())

    has_console = any(type(h) is logging.StreamHandler for h in root.handlers)
    has_file = any(
        isinstance(h, RotatingFileHandler) and h.baseFilename == log_path
        for h in root.handlers
    )

    if not has_console:
        console = logging.StreamHandler()
        console.setFormatter(formatter)
        root.addHandler(console)

    if not has_file:
        rotating = RotatingFileHandler(log_path, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS, encoding='utf-8')
        rotating.setFormatter(formatter)
        root.addHandler(rotating)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root
