"""Logging setup for CLI runs."""

import logging

from rich.logging import RichHandler


def configure_logging(level: str = "WARNING") -> None:
    """Route ``gas_finder.*`` loggers through a rich console handler."""
    logging.basicConfig(
        level=level.upper(),
        format="%(name)s: %(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )
