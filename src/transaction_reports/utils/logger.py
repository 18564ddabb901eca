"""Logging setup shared by the API and the CLI."""
import logging
import sys

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_configured = False


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Attach a console handler to the package logger (once) and set its level."""
    global _configured
    logger = logging.getLogger("transaction_reports")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    if not _configured:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False
        _configured = True

    return logger
