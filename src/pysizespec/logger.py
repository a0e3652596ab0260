"""Logging for PySizeSpec.

All modules log through children of the ``pysizespec`` logger. A console
handler is attached once, at the level from ``DEFAULTS.logging`` or the
environment variable it names. Records also propagate, so applications and
pytest's ``caplog`` see them.
"""

import logging
import os
import sys

from pysizespec.config import DEFAULTS

ROOT_NAME = 'pysizespec'

logger = logging.getLogger(ROOT_NAME)
logger.setLevel(logging.DEBUG)


def _console_handler(settings=DEFAULTS.logging) -> logging.Handler:
    """Build the stdout handler from the logging settings."""
    handler = logging.StreamHandler(sys.stdout)
    level = os.environ.get(settings.env_var, settings.level)
    handler.setLevel(level.upper())
    handler.setFormatter(logging.Formatter(settings.format, datefmt=settings.datefmt))
    return handler


# Re-importing the module must not stack handlers
if not logger.handlers:
    logger.addHandler(_console_handler())


def get_logger(name: str = None):
    """Get a logger instance.

    Parameters
    ----------
    name : str, optional
        Logger name (typically __name__). Names outside the package are
        nested under it. If None, returns the package logger.

    Returns
    -------
    logging.Logger
    """
    if not name:
        return logger
    if name == ROOT_NAME or name.startswith(ROOT_NAME + '.'):
        return logging.getLogger(name)
    return logging.getLogger(f'{ROOT_NAME}.{name}')
