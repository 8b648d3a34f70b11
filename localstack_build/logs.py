"""Logging setup and stage banners."""

from __future__ import annotations

import logging
from datetime import datetime

from rich.console import Console
from rich.logging import RichHandler

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: str = "INFO", console: Console | None = None) -> None:
    """Route all package logging through a rich handler.

    Args:
        level: Logging level name.
        console: Optional console to write to (stderr by default).
    """
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        log_time_format=f"[{DATE_FORMAT}]",
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    root = logging.getLogger("localstack_build")
    root.handlers[:] = [handler]
    root.setLevel(level)
    root.propagate = False


def log_header(logger: logging.Logger, label: str) -> None:
    """Emit a dated banner announcing entry into a stage."""
    stamp = datetime.now().strftime(DATE_FORMAT)
    logger.info("==================================")
    logger.info("%s: Running %s", stamp, label)
    logger.info("==================================")


def log_failure(logger: logging.Logger, label: str, error: BaseException) -> None:
    """Emit a dated, stage-labelled fatal message."""
    stamp = datetime.now().strftime(DATE_FORMAT)
    logger.error("%s: [%s] FAILED: %s", stamp, label, error)


__all__ = ["DATE_FORMAT", "configure_logging", "log_failure", "log_header"]
