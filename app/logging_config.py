import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from app.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def setup_logging(log_dir: Optional[str] = None, log_file: Optional[str] = None, level: Optional[str] = None):
    """
    Console + rotating file, both from settings (LOG_DIR / LOG_FILE / LOG_LEVEL).
    Calling it again is a no-op once the root logger has handlers.
    """
    root = logging.getLogger()
    if root.handlers:
        return

    level = (level or settings.LOG_LEVEL).upper()
    path = Path(log_dir or settings.LOG_DIR)
    path.mkdir(parents=True, exist_ok=True)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)

    root.setLevel(level)

    console = logging.StreamHandler()
    console.setFormatter(formatter)

    file_handler = RotatingFileHandler(
        path / (log_file or settings.LOG_FILE),
        maxBytes=settings.LOG_MAX_BYTES,
        backupCount=settings.LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)

    for handler in (console, file_handler):
        handler.setLevel(level)
        root.addHandler(handler)
