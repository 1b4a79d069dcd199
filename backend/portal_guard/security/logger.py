import logging
from logging.handlers import RotatingFileHandler
from typing import Optional

from portal_guard.core.settings import get_settings

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
MAX_LOG_BYTES = 5 * 1024 * 1024
LOG_BACKUPS = 3

security_logger = logging.getLogger("security")
security_logger.setLevel(logging.INFO)


def configure_security_log(path: Optional[str] = None) -> RotatingFileHandler:
    """Point the security logger at ``path`` (default: SECURITY_LOG_FILE).

    Any rotating handler attached earlier is closed and replaced, so calling
    this twice never duplicates log lines.
    """
    for handler in list(security_logger.handlers):
        if isinstance(handler, RotatingFileHandler):
            security_logger.removeHandler(handler)
            handler.close()

    file_handler = RotatingFileHandler(
        path or get_settings().security_log_file,
        maxBytes=MAX_LOG_BYTES,
        backupCount=LOG_BACKUPS,
        encoding="utf-8",
    )
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    security_logger.addHandler(file_handler)
    return file_handler


if not security_logger.handlers:
    configure_security_log()
