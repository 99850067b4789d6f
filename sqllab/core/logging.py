import logging
import os
import sys


def setup_logging(level=None, stream=None):
    """Configure root logger with a simple, readable format.

    The level defaults to ``SQLLAB_LOG_LEVEL`` (INFO when unset). Pass
    ``stream=sys.stderr`` when stdout carries protocol traffic.
    """
    if level is None:
        level = os.getenv("SQLLAB_LOG_LEVEL", "INFO").upper()
    fmt = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(logging.Formatter(fmt))

    root = logging.getLogger()
    root.setLevel(level)

    # Avoid adding duplicate handlers during reloads
    if not any(isinstance(h, logging.StreamHandler) for h in root.handlers):
        root.addHandler(handler)


def get_logger(name: str = None):
    return logging.getLogger(name or "sqllab")
