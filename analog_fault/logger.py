"""
logger.py — Logging Setup

Every module logs through ``logging.getLogger(__name__)`` under the
``analog_fault`` namespace. ``setup_logging`` attaches handlers to that
namespace once; library code never configures the root logger.
"""

import logging
import sys
from pathlib import Path


PACKAGE_LOGGER = 'analog_fault'

DETAILED_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
SIMPLE_FORMAT   = '%(levelname)s - %(message)s'
DATE_FORMAT     = '%Y-%m-%d %H:%M:%S'


def setup_logging(level=logging.INFO, log_file=None):
    """
    Configure console (and optional file) output for the package logger.

    Calling it again replaces the previously installed handlers.

    Parameters
    ----------
    level    : int or str — console logging level
    log_file : str        — optional path; file output always logs DEBUG

    Returns
    -------
    logger : logging.Logger — the package logger
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(logging.DEBUG)
    logger.handlers.clear()
    logger.propagate = False

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(logging.Formatter(SIMPLE_FORMAT))
    logger.addHandler(console)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(DETAILED_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(file_handler)

    return logger
