from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

# stdout carries the protocol; everything human-readable goes to stderr.
console = Console(stderr=True)


def setup_logging(level: str = "INFO") -> logging.Logger:
    logger = logging.getLogger("opsmcp")
    logger.setLevel(level.upper())
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(console=console, show_path=False, rich_tracebacks=False, markup=False)
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
        logger.addHandler(handler)
        logger.propagate = False
    return logger
