"""
Logging setup for the broker.

Every module logs through a child of the ``agentauth`` logger
(``logging.getLogger("agentauth.services.token_broker")`` and so on).
``setup_logging`` attaches one stdout handler to the root of that tree.

Never pass client secrets, access/refresh tokens or full API keys to a logger.
"""

import logging
import sys

LOGGER_NAME = "agentauth"
LOG_FORMAT = "[%(asctime)s] %(levelname)s [%(name)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str = "INFO") -> logging.Logger:
    """
    Configure the ``agentauth`` logger hierarchy.

    Safe to call more than once: the handler is only added the first time,
    later calls just update the level.

    Args:
        level: Level name such as "INFO" or "DEBUG"

    Returns:
        The configured ``agentauth`` logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level.upper())

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(handler)

    for handler in logger.handlers:
        handler.setLevel(level.upper())

    return logger
