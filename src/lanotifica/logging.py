"""Console and file logging for the relay.

All modules log through children of the `lanotifica` logger
(`logging.getLogger(__name__)`), so configuring that one logger is enough.
"""

import logging
from pathlib import Path

LOGGER_NAME = "lanotifica"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"  # 2025-01-27 10:30:45 [INFO] ...
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_logger: logging.Logger | None = None


def setup_logging(level: str = "INFO", log_file: str | None = None) -> logging.Logger:
    """Configure the `lanotifica` logger on first call; later calls return it unchanged.

    Unknown level names fall back to INFO. When log_file is given its parent
    directory is created and records go to both the file and stderr.
    """
    global _logger
    if _logger is not None:
        return _logger

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    for handler in _build_handlers(log_file):
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    # The relay owns its output; don't duplicate records through the root logger
    logger.propagate = False

    _logger = logger
    return logger


def _build_handlers(log_file: str | None) -> list[logging.Handler]:
    handlers: list[logging.Handler] = []
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path))
    handlers.append(logging.StreamHandler())
    return handlers


def reset_logging() -> None:
    """Close handlers and forget the configured logger (test isolation)."""
    global _logger
    if _logger is None:
        return
    for handler in _logger.handlers:
        handler.close()
    _logger.handlers.clear()
    _logger.propagate = True
    _logger = None
