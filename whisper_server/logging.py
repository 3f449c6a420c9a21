"""
whisper_server.logging - Centralized logging configuration.

Package loggers report process lifecycle at INFO; third-party loggers stay
at WARNING so request logs from httpx do not drown them out.
"""

from __future__ import annotations

import logging

logger = logging.getLogger("whisper_server")


def configure_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Configure logging for the whisper_server package.

    Args:
        verbose: Enable DEBUG level logging (commands, request fields)
        quiet: Only show warnings and errors
    """
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO

    logging.basicConfig(
        level=logging.WARNING,
        format="%(levelname)s: %(message)s",
    )
    logger.setLevel(level)
    logging.getLogger("httpx").setLevel(logging.WARNING)
