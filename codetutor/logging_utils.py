"""
Logging utilities for CodeTutor.

All modules log under the ``codetutor`` hierarchy so a single call to
configure_logging() controls the whole package.

Usage:
    from codetutor.logging_utils import get_logger

    logger = get_logger(__name__)
    logger.info("Lesson generated")
"""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

ROOT_LOGGER = "codetutor"

# Track if root logger has been configured
_root_configured = False


def configure_logging(
    level: int = logging.WARNING,
    console: Optional[Console] = None,
) -> None:
    """
    Configure the codetutor root logger.

    Call once at startup. Subsequent calls are ignored.

    Args:
        level: Logging level (default: WARNING, the REPL stays quiet)
        console: rich Console to log through (default: stderr console)
    """
    global _root_configured
    if _root_configured:
        return

    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(level)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))

    root.addHandler(handler)
    _root_configured = True


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a module.

    Args:
        name: Module name (typically __name__)

    Returns:
        Logger under the codetutor hierarchy.
    """
    if name == ROOT_LOGGER or name.startswith(ROOT_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def set_verbose(verbose: bool) -> None:
    """Switch all codetutor loggers between DEBUG and WARNING."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.getLogger(ROOT_LOGGER).setLevel(level)
