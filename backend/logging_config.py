"""Logging setup for the RUP Satker backend.

Library modules log to ``rup.<area>`` child loggers; ``setup_logging("rup")``
attaches the handlers once at the root of that tree.
"""
import logging
import os
from logging.handlers import RotatingFileHandler

LOG_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)s | %(threadName)s | %(message)s'
LOG_DATEFMT = '%Y-%m-%d %H:%M:%S'


def _file_logging_enabled() -> bool:
    return os.environ.get("RUP_LOG_FILE", "1").strip().lower() not in ("0", "false", "no", "off")


def setup_logging(name: str, level: str = "INFO", log_name: str = "rup-api") -> logging.Logger:
    """Configure the ``name`` logger with console and optional rotating file output.

    Args:
        name: Logger name; handlers attached here also serve its children
        level: Log level string (DEBUG, INFO, WARNING, ERROR)
        log_name: Base name of the log file

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    log_level = getattr(logging, str(level).upper(), logging.INFO)
    logger.setLevel(log_level)
    logger.propagate = False
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)

    console = logging.StreamHandler()
    console.setLevel(log_level)
    console.setFormatter(formatter)
    logger.addHandler(console)

    if _file_logging_enabled():
        log_dir = os.environ.get("RUP_LOG_DIR") or os.path.join(os.path.dirname(__file__), "logs")
        os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(log_dir, f"{log_name}.log"),
            maxBytes=10 * 1024 * 1024,  # 10 MB
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    # urllib3 logs every connection at DEBUG
    logging.getLogger("urllib3").setLevel(max(log_level, logging.WARNING))

    return logger
