"""
Logging configuration for the inbox service.
Call setup_logging() once at startup (main.py).
"""

import logging
import sys


def setup_logging(level: int = logging.INFO):
    """Send 'app.*' records to stdout with a pipe-separated layout."""
    root = logging.getLogger("app")
    root.setLevel(level)
    if any(getattr(h, "_inbox_handler", False) for h in root.handlers):
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
    ))
    handler._inbox_handler = True
    root.addHandler(handler)
