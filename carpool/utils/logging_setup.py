"""
Logging setup shared by the CLI and any embedding application.
"""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOG_FORMAT = "%(name)s - %(message)s"


def configure_logging(level: str = "INFO", debug: bool = False, console: Optional[Console] = None) -> None:
    """
    Install a Rich log handler on the root logger.

    Args:
        level: Standard logging level name
        debug: Force DEBUG level and show SQL statements
        console: Optional Rich console to log to (defaults to stderr)
    """
    effective_level = logging.DEBUG if debug else getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=effective_level,
        format=LOG_FORMAT,
        datefmt="[%X]",
        handlers=[RichHandler(console=console or Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )

    # SQLAlchemy logs every statement at INFO; keep it quiet unless debugging
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if debug else logging.WARNING)
