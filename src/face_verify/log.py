"""Logging setup."""

from __future__ import annotations

import logging

_PACKAGE_LOGGER = "face_verify"


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def configure_logging(verbose: bool = False) -> None:
    """Attach a rich console handler to the package logger.

    Only entry points call this; library modules just create loggers.
    """
    from rich.console import Console
    from rich.logging import RichHandler

    logger = logging.getLogger(_PACKAGE_LOGGER)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=True)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
    logger.propagate = False
