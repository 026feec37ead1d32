"""
Logging setup for stash.

Library code only ever calls ``logging.getLogger(__name__)``; the host application
decides whether to call ``configure_logging``.
"""
import logging
import sys
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: Optional[Union[str, int]] = None) -> logging.Logger:
    """Attach a single stderr handler to the ``stash`` logger.

    Safe to call more than once; the handler is only added the first time.
    """
    if level is None:
        from .config import get_settings
        level = get_settings().log_level
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    stash_logger = logging.getLogger("stash")
    stash_logger.setLevel(level)

    if not any(getattr(h, "_stash_handler", False) for h in stash_logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))
        handler._stash_handler = True  # type: ignore[attr-defined]
        stash_logger.addHandler(handler)

    for h in stash_logger.handlers:
        h.setLevel(level)
    return stash_logger
