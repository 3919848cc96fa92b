"""Logging setup for the Novo service."""
import logging
import sys

from novo.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level_name: str = None) -> None:
    """Install a stdout handler on the ``novo`` logger tree.

    Safe to call more than once; the handler is only attached the first time.
    """
    level_name = (level_name or settings.LOG_LEVEL).upper()
    level = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger("novo")
    root.setLevel(level)

    if not any(getattr(handler, "_novo_handler", False) for handler in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
        handler._novo_handler = True
        root.addHandler(handler)

    root.debug("Logging initialized at %s", level_name)
