"""Output formatting utilities for the CLI.

Everything here writes to stderr: stdout is reserved for the generated
script so it can be redirected to a file.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterable

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.theme import Theme

_THEME = Theme(
    {
        "ok": "bold green",
        "warn": "yellow",
        "err": "bold red",
        "meta": "dim",
    }
)

console = Console(theme=_THEME, stderr=True, highlight=False)


@dataclass(frozen=True)
class Out:
    """Output formatter for CLI messages and tables."""

    @contextmanager
    def status(self, msg: str):
        """Show a transient status spinner while work is in progress."""
        with console.status(msg, spinner="dots"):
            yield

    def warn(self, msg: str) -> None:
        """Print a warning message."""
        console.print(f"[warn]WARNING:[/] {escape(msg)}")

    def error(self, msg: str) -> None:
        """Print an error message as a single `ERROR: <message>` line."""
        console.print(f"[err]ERROR:[/] {escape(msg)}", soft_wrap=True)

    def objects_table(self, refs: Iterable[Any], title: str = "Objects") -> None:
        """
        Render a table of scripted objects.

        Expects objects with .kind .schema .name (like DatabaseObjectRef).
        """
        t = Table(title=title, show_lines=False)
        t.add_column("Kind", style="meta", no_wrap=True)
        t.add_column("Schema", style="ok")
        t.add_column("Name")

        for r in refs:
            kind = r.kind.value if hasattr(r.kind, "value") else str(r.kind)
            t.add_row(kind, escape(r.schema), escape(r.name))

        console.print(t)


out = Out()
