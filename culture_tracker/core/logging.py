"""
Process-wide logging setup.

Streams to stdout so the hosting platform (and Gunicorn's error log) captures
everything. Modules log through `logging.getLogger(__name__)`.
"""
import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"


def configure_logging(level: str = "INFO") -> logging.Logger:
    """
    Attach a stdout handler to the `culture_tracker` logger tree.

    Safe to call more than once: handlers are only added the first time.
    """
    logger = logging.getLogger("culture_tracker")
    logger.setLevel(level.upper())

    # Avoid adding duplicate handlers on reloads within the same process
    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(handler)
    return logger
