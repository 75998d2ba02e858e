"""Error kinds raised by the schema scripting engine.

Every error aborts the run. The CLI catches `SchemaScriptError` once at the
top level, prints a single `ERROR: <message>` line and exits with code 1.
"""

from __future__ import annotations

from typing import Sequence


class SchemaScriptError(RuntimeError):
    """Base class for all fatal scripting errors."""


class ServerConnectionError(SchemaScriptError):
    """Raised on authentication failure, unreachable host, missing database or timeout."""


class ObjectNotFoundError(SchemaScriptError):
    """Raised when a selector names an object that does not exist."""


class NoObjectsSelectedError(SchemaScriptError):
    """Raised when the selection set is empty after filtering."""

    def __init__(self, message: str = "No DB objects are selected for export.") -> None:
        super().__init__(message)


class DependencyCycleError(SchemaScriptError):
    """Raised when objects reference each other in a cycle."""

    def __init__(self, members: Sequence[object]) -> None:
        self.members = list(members)
        # close the loop so the message reads A -> B -> A
        names = " -> ".join(str(m) for m in [*self.members, *self.members[:1]])
        super().__init__(f"Dependency cycle detected: {names}")


class GenerationError(SchemaScriptError):
    """Raised when metadata is malformed or unsupported while emitting DDL."""
