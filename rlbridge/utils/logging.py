from __future__ import annotations

import logging

DEFAULT_DATEFMT = "%H:%M:%S"
DEFAULT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def verbosity_to_level(verbosity: int) -> int:
    verbosity = int(verbosity or 0)
    if verbosity <= 0:
        return logging.WARNING
    if verbosity == 1:
        return logging.INFO
    return logging.DEBUG


def configure_logging(verbosity: int = 0, *, fmt: str = DEFAULT_FORMAT, datefmt: str = DEFAULT_DATEFMT, force: bool = False) -> None:
    """
    Configure root logging once, and always keep the level in line with `verbosity`.

    Safe to call from both the CLI and library code.
    """
    level = verbosity_to_level(verbosity)
    root = logging.getLogger()
    root.setLevel(level)

    if force or not root.handlers:
        handler = logging.StreamHandler()
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(fmt=fmt, datefmt=datefmt))
        logging.basicConfig(level=level, handlers=[handler], force=force)
        return

    for handler in root.handlers:
        handler.setLevel(level)


def get_logger(name: str = "rlbridge") -> logging.Logger:
    return logging.getLogger(name)
