"""Object selector abstractions and implementations.

This module defines how the set of objects to script is chosen from the
catalog. A selector declares which object kinds it needs (so the loader can
skip catalog queries it does not need) and picks refs out of the catalog
enumeration.

Selectors are pure, side-effect-free objects and are intended to be
reusable across different frontends such as the CLI and tests.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from wdbschema.core.errors import ObjectNotFoundError
from wdbschema.core.models import DatabaseObjectRef, ObjectKind


class ObjectSelector(ABC):
    """
    Abstract base class for all object selectors.

    An ObjectSelector decides which catalog objects end up in the script.
    """

    @abstractmethod
    def wants(self, kind: ObjectKind) -> bool:
        """
        Determine whether objects of this kind may be selected at all.

        Args:
            kind: Object kind to evaluate.

        Returns:
            True if the loader has to enumerate objects of this kind.
        """
        ...

    @abstractmethod
    def select(self, refs: Sequence[DatabaseObjectRef]) -> list[DatabaseObjectRef]:
        """
        Pick the selected refs out of the catalog enumeration.

        Args:
            refs: Catalog refs in enumeration order.

        Returns:
            The selected refs, preserving enumeration order.

        Raises:
            ObjectNotFoundError: If the selector names an object that is not
                present in `refs`.
        """
        ...


class AllObjectsSelector(ObjectSelector):
    """
    Selector that takes every table and view, plus stored procedures and
    functions when routines are requested.
    """

    def __init__(self, include_routines: bool = False):
        """
        Create an all-objects selector.

        Args:
            include_routines: Also select stored procedures and functions.
        """
        self.include_routines = include_routines

    def wants(self, kind: ObjectKind) -> bool:
        if kind in (ObjectKind.TABLE, ObjectKind.VIEW):
            return True
        return self.include_routines

    def select(self, refs: Sequence[DatabaseObjectRef]) -> list[DatabaseObjectRef]:
        return [r for r in refs if self.wants(r.kind)]


class SingleTableSelector(ObjectSelector):
    """
    Selector that takes one table by name and optional schema.

    Without a schema the first table with a matching name in catalog
    enumeration order wins; same-named tables in later schemas are ignored.
    """

    def __init__(self, name: str, schema: str | None = None):
        """
        Create a single-table selector.

        Args:
            name: Table name (exact match).
            schema: Optional schema qualifier (exact match).
        """
        if not name:
            raise ValueError("Table name must not be empty.")
        self.name = name
        self.schema = schema or None

    def wants(self, kind: ObjectKind) -> bool:
        return kind is ObjectKind.TABLE

    def select(self, refs: Sequence[DatabaseObjectRef]) -> list[DatabaseObjectRef]:
        for ref in refs:
            if ref.kind is not ObjectKind.TABLE or ref.name != self.name:
                continue
            if self.schema is not None and ref.schema != self.schema:
                continue
            return [ref]
        raise ObjectNotFoundError(
            f"Table '{self.describe()}' not found. No DB objects are selected for export."
        )

    def describe(self) -> str:
        return f"{self.schema}.{self.name}" if self.schema else self.name
