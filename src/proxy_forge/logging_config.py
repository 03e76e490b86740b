"""Logging setup for the command line."""

import logging

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(verbosity: int = 0, console: Console | None = None) -> None:
    """Route library logging through rich.

    0 -> WARNING, 1 -> INFO, 2+ -> DEBUG.
    """
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    handler = RichHandler(console=console, show_path=verbosity >= 2, rich_tracebacks=True, markup=False)
    root = logging.getLogger()
    for existing in list(root.handlers):
        if isinstance(existing, RichHandler):
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)

    # paramiko is chatty at INFO
    logging.getLogger("paramiko").setLevel(max(level, logging.WARNING))
