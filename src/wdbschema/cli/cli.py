"""CLI application for SQL Server schema scripting."""

import sys

import click
import typer

from wdbschema.cli.commands.script import script
from wdbschema.cli.common.output import out

app = typer.Typer(
    help="wdbschema - print a schema-only SQL script for a SQL Server database",
    add_completion=False,
)

app.command(name="script")(script)


def main() -> None:
    """
    Console entry point.

    Command-line parse errors are reported like every other failure: a single
    `ERROR:` line on stderr and exit code 1.
    """
    try:
        code = app(standalone_mode=False)
    except click.UsageError as exc:
        out.error(exc.format_message())
        sys.exit(1)
    except click.Abort:
        out.error("Aborted.")
        sys.exit(1)
    if isinstance(code, int) and code:
        sys.exit(code)


if __name__ == "__main__":
    main()
