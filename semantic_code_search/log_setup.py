"""
Logging setup for the semantic code-search package.

Modules log through ``logging.getLogger(__name__)``; this helper attaches
a file handler to the package logger so verbose output lands on disk.
Nothing is configured at import time.
"""

import logging
import os
from datetime import datetime

PACKAGE_LOGGER = "semantic_code_search"


def configure_logging(log_dir: str = ".codesearch/logs",
                      level: int = logging.DEBUG) -> logging.Logger:
    """Create a file logger under *log_dir*. All verbose output goes here.

    Calling it again with the same *log_dir* does not add a second handler.
    """
    os.makedirs(log_dir, exist_ok=True)
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)

    abs_dir = os.path.abspath(log_dir)
    for handler in logger.handlers:
        if (isinstance(handler, logging.FileHandler)
                and os.path.dirname(handler.baseFilename) == abs_dir):
            return logger

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = os.path.join(log_dir, f"codesearch_{timestamp}.log")
    fh = logging.FileHandler(log_file, encoding="utf-8")
    fh.setLevel(level)
    fh.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s", datefmt="%H:%M:%S"
    ))
    logger.addHandler(fh)
    return logger
