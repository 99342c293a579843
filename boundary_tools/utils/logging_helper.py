"""A basic logging helper for interactive sessions and notebooks."""
from __future__ import annotations

import logging
import sys
from typing import IO, Final

LOG_FORMAT: Final[str] = "[%(levelname)s] %(asctime)s :: %(message)s"
LOG_DATEFMT: Final[str] = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: int = logging.INFO, stream: IO[str] | None = None) -> logging.Logger:
    """Configure the root logger and return it.

    Library modules only create named loggers; call this once from a script
    or notebook to see their progress messages.
    """
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
        handlers=[logging.StreamHandler(stream or sys.stdout)],
        force=True,
    )
    return logging.getLogger()


def progress_level(verbose: bool) -> int:
    """Log level used for progress messages given a ``verbose`` flag."""
    return logging.INFO if verbose else logging.DEBUG
