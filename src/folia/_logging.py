"""Logging setup for the folia entry points.

Library modules only do ``log = logging.getLogger(__name__)``. Handlers are
attached here, by the CLI and the HTTP server, never on import.
"""

import logging
import os
import sys

LOG_FORMAT = "[%(levelname)s] %(name)s: %(message)s"
LOG_LEVEL_ENV = "FOLIA_LOG_LEVEL"


def resolve_level(level: str | None = None) -> int:
    """Numeric level from ``level``, else FOLIA_LOG_LEVEL, else INFO.

    Unknown level names fall back to INFO.
    """
    name = (level or os.environ.get(LOG_LEVEL_ENV) or "INFO").upper()
    value = logging.getLevelName(name)
    return value if isinstance(value, int) else logging.INFO


def configure_logging(level: str | None = None) -> logging.Logger:
    """Send ``folia`` log records to stderr.

    The handler is attached once; later calls only change the level.
    """
    logger = logging.getLogger("folia")
    logger.setLevel(resolve_level(level))

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False

    return logger
