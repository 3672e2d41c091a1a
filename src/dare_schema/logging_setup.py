"""
Logging setup for dare-schema command-line runs.
"""

import logging
from logging.handlers import RotatingFileHandler
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from .config import LoggingConfig


def configure_logging(
    config: LoggingConfig,
    debug: bool = False,
    console: Optional[Console] = None,
) -> None:
    """Install console (and optional rotating file) handlers on the root logger."""
    level = logging.DEBUG if debug else getattr(logging, config.level)

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.setLevel(level)

    console_handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=debug,
        rich_tracebacks=debug,
    )
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(console_handler)

    if config.file:
        file_handler = RotatingFileHandler(
            config.file,
            maxBytes=config.max_size,
            backupCount=config.backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(logging.Formatter(config.format))
        root.addHandler(file_handler)

    # asyncpg logs every pool event at DEBUG
    logging.getLogger("asyncpg").setLevel(max(level, logging.INFO))
