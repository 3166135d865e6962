"""Logging for the ledger services.

All ledger loggers hang off the ``campus_ledger`` namespace, which owns a
single stdout handler stamped in UTC. Modules outside the package (``app``,
``scripts``) are re-parented under that namespace by ``get_logger`` so one
level setting governs the whole process without touching the root logger
that uvicorn configures.
"""

from __future__ import annotations

import logging
import sys
import time
from typing import Optional

from campus_ledger.utils.config import get_settings


LOGGER_NAMESPACE = "campus_ledger"
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

_handler: Optional[logging.Handler] = None


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """Attach the ledger handler once; an explicit ``level`` always applies."""
    global _handler
    namespace_logger = logging.getLogger(LOGGER_NAMESPACE)

    if _handler is None:
        formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
        formatter.converter = time.gmtime
        _handler = logging.StreamHandler(sys.stdout)
        _handler.setFormatter(formatter)
        namespace_logger.addHandler(_handler)
        namespace_logger.propagate = False
        level = level or get_settings().log_level

    if level:
        namespace_logger.setLevel(level.upper())
    return namespace_logger


def get_logger(name: str) -> logging.Logger:
    """Return a logger inside the ledger namespace for ``name``."""
    configure_logging()
    if name != LOGGER_NAMESPACE and not name.startswith(LOGGER_NAMESPACE + "."):
        name = f"{LOGGER_NAMESPACE}.{name}"
    return logging.getLogger(name)
