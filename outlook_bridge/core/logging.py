"""
Logging setup shared by the HTTP surface and the operator scripts.

Records go to stderr so stdout stays free for protocol traffic and CLI output.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Request lines from the HTTP client stack are only useful when debugging.
_CHATTY_LOGGERS = ("httpx", "httpcore")


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging and quiet the HTTP client loggers."""
    resolved = level.upper()
    logging.basicConfig(level=resolved, format=LOG_FORMAT, stream=sys.stderr)
    if logging.getLevelName(resolved) != logging.DEBUG:
        for name in _CHATTY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


__all__ = ["LOG_FORMAT", "configure_logging"]
