"""Logging setup for MemberGuard.

Modules log through ``logging.getLogger(__name__)`` and propagate to the
``memberguard`` package logger configured here. Denials, overrides and
lost races are logged at WARNING or INFO, so the configured level decides
how much of that trail reaches the handlers.
"""

import logging
import logging.handlers
import os
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from memberguard.core.config import Settings


LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s] %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"
LOG_FILE = "memberguard.log"
LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Marks handlers owned by setup_logger
_OWNED = "_memberguard_handler"


def _parse_level(level: str) -> int:
    level_upper = level.upper()
    if level_upper not in LEVELS:
        raise ValueError(f"Invalid log level: {level}. Must be one of: {', '.join(LEVELS)}")
    return getattr(logging, level_upper)


def setup_logger(
    level: str = "INFO",
    log_dir: Optional[str] = None,
    *,
    name: str = "memberguard",
    max_bytes: int = 10485760,  # 10MB
    backup_count: int = 5,
) -> logging.Logger:
    """Configure the package logger with console and optional file output.

    Handlers installed by an earlier call are replaced, so the app factory
    can run many times in one process without stacking output.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Also write a rotating ``memberguard.log`` here when set
        name: Logger to configure
        max_bytes: Maximum log file size before rotation
        backup_count: Number of rotated files to keep

    Returns:
        The configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(_parse_level(level))

    for handler in [h for h in logger.handlers if getattr(h, _OWNED, False)]:
        logger.removeHandler(handler)
        handler.close()

    handlers = [logging.StreamHandler()]
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.handlers.RotatingFileHandler(
            os.path.join(log_dir, LOG_FILE), maxBytes=max_bytes, backupCount=backup_count
        ))

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
        setattr(handler, _OWNED, True)
        logger.addHandler(handler)
    return logger


def configure_from_settings(settings: "Settings") -> logging.Logger:
    """Apply ``log_level``, ``log_dir`` and ``log_to_file`` from settings."""
    return setup_logger(
        settings.log_level,
        settings.log_dir if settings.log_to_file else None,
    )
