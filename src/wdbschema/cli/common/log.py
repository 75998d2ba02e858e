"""Logging setup for the CLI."""

import logging

from rich.logging import RichHandler

from wdbschema.cli.common.output import console

# drivers and pools log connection chatter at INFO
_NOISY_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool")


def setup_logging(verbose: bool = False) -> None:
    """Route log records to the stderr console; DEBUG when verbose."""
    level = logging.DEBUG if verbose else logging.WARNING
    root = logging.getLogger()
    for handler in root.handlers[:]:
        if isinstance(handler, RichHandler):
            root.removeHandler(handler)

    handler = RichHandler(console=console, show_path=False, rich_tracebacks=False)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    root.addHandler(handler)
    root.setLevel(level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
