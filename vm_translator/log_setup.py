"""
Logging setup for the Hack VM Translator.

Console output goes through rich's RichHandler on stderr; an optional
log file captures everything at DEBUG with a pipe-separated format.
Module loggers live under the 'vm_translator' name, so configuring
that logger once covers the whole package.
"""

from __future__ import annotations
import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(
    name: str = "vm_translator",
    level: int = logging.DEBUG,
    console_level: int = logging.WARNING,
    log_file: Optional[Path] = None,
    force: bool = False,
) -> logging.Logger:
    """
    Configure and return the package logger.

    Calling it again returns the already-configured logger unchanged,
    unless force is set: then the existing handlers are closed and
    replaced with ones built from the new arguments.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        if not force:
            return logger
        for h in list(logger.handlers):
            logger.removeHandler(h)
            h.close()
    logger.setLevel(level)

    # ── Console handler: stderr, so assembly on stdout stays clean ──
    ch = RichHandler(
        console=Console(stderr=True),
        level=console_level,
        show_time=False,
        show_path=False,
        rich_tracebacks=True,
    )
    ch.setLevel(console_level)
    logger.addHandler(ch)

    # ── File handler: captures everything (DEBUG+) ──
    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(str(log_file), encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)-7s | %(name)s | %(funcName)s:%(lineno)d | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
        logger.addHandler(fh)
        logger.info("Log file: %s", log_file)

    return logger
