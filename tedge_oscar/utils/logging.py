import logging
import os
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_default_level: str | None = None


def setup_logger(name: str, level: str | None = None) -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False
    logger.setLevel((level or _default_level or os.environ.get("LOG_LEVEL", "INFO")).upper())
    return logger


def set_level(level: str) -> None:
    """Apply ``level`` to module loggers and to every logger created by setup_logger."""
    global _default_level
    _default_level = level.upper()
    logging.getLogger("tedge_oscar").setLevel(_default_level)
    for logger in logging.Logger.manager.loggerDict.values():
        if isinstance(logger, logging.Logger) and logger.handlers:
            logger.setLevel(_default_level)
