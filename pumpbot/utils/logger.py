# utils/logger.py
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Any, Mapping, Optional, Union

FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# libraries that chatter at INFO during reconnects
NOISY = ("websockets", "aiohttp", "asyncio", "telegram", "httpx")


def setup_logger(name: str,
                 level: Union[str, int] = "INFO",
                 log_file: Optional[str] = None,
                 *,
                 max_mb: float = 5,
                 backups: int = 5,
                 to_console: bool = True) -> logging.Logger:
    """
    Create/get a logger with console and (optionally) rotating-file handlers.
    Re-using the same name returns the same configured logger (no duplicate handlers).
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(level)
    formatter = logging.Formatter(fmt=FORMAT, datefmt=DATE_FORMAT)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=int(max_mb * 1024 * 1024),
            backupCount=backups,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        file_handler.setLevel(level)
        logger.addHandler(file_handler)

    if to_console:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(formatter)
        stream_handler.setLevel(level)
        logger.addHandler(stream_handler)

    for lib in NOISY:
        logging.getLogger(lib).setLevel(logging.WARNING)

    return logger


def logger_from_config(config: Mapping[str, Any], name: str = "pumpbot") -> logging.Logger:
    """Build the application logger from the LOG_* keys of ``load_configuration``."""
    return setup_logger(
        name,
        level=config.get("LOG_LEVEL", "INFO"),
        log_file=config.get("LOG_FILE") or None,
        max_mb=config.get("LOG_MAX_MB", 5),
        backups=int(config.get("LOG_BACKUPS", 5)),
    )
