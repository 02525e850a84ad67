"""Logger access for code that may run before JSON logging is set up.

Library modules (storage adapters, retry helpers) ask for loggers at import
time. Until ``shared.logging.json.configure_logging`` runs, the first
``get_logger`` call installs a plain text handler honouring APP_LOG_LEVEL.
"""

from __future__ import annotations

import logging
import os

_TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_configured = False


def get_logger(name: str, auto_configure: bool = True) -> logging.Logger:
    """Return the named logger, installing the text fallback if needed.

    Pass ``auto_configure=False`` from modules that must not touch the root
    logger when imported.
    """
    if auto_configure and not _configured:
        level = os.getenv("APP_LOG_LEVEL", "INFO").upper()
        logging.basicConfig(
            level=getattr(logging, level, logging.INFO), format=_TEXT_FORMAT
        )
        mark_configured()

    logger = logging.getLogger(name)
    logger.propagate = True
    return logger


def is_configured() -> bool:
    return _configured


def mark_configured():
    global _configured
    _configured = True


def reset_configured():
    """Forget previous configuration; used by tests."""
    global _configured
    _configured = False
