"""Exit handling utilities for the CLI."""

from typing import NoReturn

import typer

from wdbschema.cli.common.output import out


def die(msg: str, code: int = 1) -> NoReturn:
    """Exit with an `ERROR:` message and optional exit code."""
    out.error(msg)
    raise typer.Exit(code)


def exit_from_exc(exc: BaseException, *, message: str | None = None, code: int = 1) -> NoReturn:
    """
    Print an error message for an exception and exit with a given code.

    The exception message is used when no explicit message is given.
    """
    out.error(message or str(exc) or exc.__class__.__name__)
    raise typer.Exit(code) from exc
