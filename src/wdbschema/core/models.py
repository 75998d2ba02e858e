"""Core domain models for SQL Server schema objects.

These models represent catalog objects in a simple, immutable form. They are
built once per run by the catalog loader and are read-only afterwards. They
are intentionally free of SQLAlchemy types and CLI concerns.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping

from wdbschema.core.errors import GenerationError


def quote_name(name: str) -> str:
    """Bracket-quote an identifier, escaping closing brackets."""
    return "[" + name.replace("]", "]]") + "]"


class ObjectKind(str, Enum):
    """
    Kind of a scriptable catalog object.

    Values:
        TABLE: A user table.
        VIEW: A view.
        PROCEDURE: A stored procedure.
        FUNCTION: A user-defined function (scalar, inline or table-valued).
    """

    TABLE = "TABLE"
    VIEW = "VIEW"
    PROCEDURE = "PROCEDURE"
    FUNCTION = "FUNCTION"


class ConstraintKind(str, Enum):
    """Kind of a table constraint."""

    PRIMARY_KEY = "PRIMARY KEY"
    UNIQUE = "UNIQUE"
    FOREIGN_KEY = "FOREIGN KEY"
    CHECK = "CHECK"
    DEFAULT = "DEFAULT"


@dataclass(frozen=True, order=True)
class DatabaseObjectRef:
    """
    Identifies a catalog object.

    Attributes:
        kind: Object kind.
        schema: Owning schema name.
        name: Object name.
    """

    kind: ObjectKind
    schema: str
    name: str

    @property
    def qualified_name(self) -> str:
        return f"{quote_name(self.schema)}.{quote_name(self.name)}"

    def __str__(self) -> str:
        return self.qualified_name


# types whose length is stored in bytes but declared in characters
_UNICODE_TYPES = frozenset({"nchar", "nvarchar"})
_LENGTH_TYPES = frozenset({"char", "varchar", "binary", "varbinary"}) | _UNICODE_TYPES
_PRECISION_SCALE_TYPES = frozenset({"decimal", "numeric"})
_SCALE_ONLY_TYPES = frozenset({"datetime2", "datetimeoffset", "time"})


@dataclass(frozen=True)
class DataType:
    """
    A column data type as declared in the catalog.

    `length` is in characters for character types and in bytes for binary
    types; `-1` stands for `max`.
    """

    name: str
    schema: str | None = None
    length: int | None = None
    precision: int | None = None
    scale: int | None = None

    @classmethod
    def from_catalog(
        cls,
        name: str,
        *,
        max_length: int | None = None,
        precision: int | None = None,
        scale: int | None = None,
        schema: str | None = None,
        is_user_defined: bool = False,
    ) -> DataType:
        """Build a DataType from raw `sys.columns`/`sys.types` values."""
        if is_user_defined:
            return cls(name=name, schema=schema)

        lowered = name.lower()
        if lowered in _LENGTH_TYPES:
            if max_length is None:
                raise GenerationError(f"Type '{name}' has no length in the catalog.")
            length = max_length
            if lowered in _UNICODE_TYPES and max_length != -1:
                length = max_length // 2
            return cls(name=lowered, length=length)
        if lowered in _PRECISION_SCALE_TYPES:
            return cls(name=lowered, precision=precision, scale=scale)
        if lowered in _SCALE_ONLY_TYPES:
            return cls(name=lowered, scale=scale)
        if lowered == "float":
            return cls(name=lowered, precision=precision)
        return cls(name=lowered)

    def render(self) -> str:
        """Render the type the way it would be declared in DDL."""
        if self.schema:
            return f"{quote_name(self.schema)}.{quote_name(self.name)}"

        base = quote_name(self.name)
        if self.name in _LENGTH_TYPES:
            if self.length is None:
                raise GenerationError(f"Type '{self.name}' requires a length.")
            return f"{base}({'max' if self.length == -1 else self.length})"
        if self.name in _PRECISION_SCALE_TYPES:
            if self.precision is None:
                raise GenerationError(f"Type '{self.name}' requires a precision.")
            return f"{base}({self.precision}, {self.scale or 0})"
        if self.name in _SCALE_ONLY_TYPES and self.scale is not None:
            return f"{base}({self.scale})"
        # float(53) is the default and is declared without precision
        if self.name == "float" and self.precision not in (None, 53):
            return f"{base}({self.precision})"
        return base


@dataclass(frozen=True)
class ConstraintDef:
    """
    A table constraint.

    Attributes:
        kind: Constraint kind.
        name: Constraint name.
        columns: Constrained columns in key order. For PRIMARY KEY and UNIQUE
            each entry is paired with a descending flag in `descending`.
        descending: Per-column sort direction for key constraints.
        clustered: Whether the backing index is clustered (PK/UNIQUE).
        referenced: Referenced table (FOREIGN KEY).
        referenced_columns: Referenced columns in key order (FOREIGN KEY).
        on_delete: Referential action such as CASCADE (FOREIGN KEY).
        on_update: Referential action such as CASCADE (FOREIGN KEY).
        expression: Predicate (CHECK) or value expression (DEFAULT).
    """

    kind: ConstraintKind
    name: str
    columns: tuple[str, ...] = ()
    descending: tuple[bool, ...] = ()
    clustered: bool = False
    referenced: DatabaseObjectRef | None = None
    referenced_columns: tuple[str, ...] = ()
    on_delete: str | None = None
    on_update: str | None = None
    expression: str | None = None
    is_disabled: bool = False


@dataclass(frozen=True)
class ColumnDef:
    """A table column."""

    name: str
    data_type: DataType
    nullable: bool = True
    identity: tuple[str, str] | None = None
    computed: str | None = None
    persisted: bool = False
    default: ConstraintDef | None = None
    collation: str | None = None
    rowguidcol: bool = False


@dataclass(frozen=True)
class IndexDef:
    """A non-constraint index on a table."""

    name: str
    columns: tuple[tuple[str, bool], ...]
    unique: bool = False
    clustered: bool = False
    included: tuple[str, ...] = ()
    filter: str | None = None


@dataclass(frozen=True)
class TriggerDef:
    """A DML trigger attached to a table."""

    name: str
    definition: str | None
    is_disabled: bool = False


@dataclass(frozen=True)
class ExtendedProperty:
    """An extended property on an object or one of its columns."""

    name: str
    value: str
    column: str | None = None


@dataclass(frozen=True)
class TableDef:
    """A table with its columns, indexes, constraints and triggers."""

    ref: DatabaseObjectRef
    columns: tuple[ColumnDef, ...]
    indexes: tuple[IndexDef, ...] = ()
    constraints: tuple[ConstraintDef, ...] = ()
    triggers: tuple[TriggerDef, ...] = ()
    properties: tuple[ExtendedProperty, ...] = ()
    is_system: bool = False

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for column in self.columns:
            key = column.name.lower()
            if key in seen:
                raise GenerationError(
                    f"Duplicate column '{column.name}' in table {self.ref}."
                )
            seen.add(key)
        pks = [c for c in self.constraints if c.kind is ConstraintKind.PRIMARY_KEY]
        if len(pks) > 1:
            raise GenerationError(f"Table {self.ref} has more than one primary key.")

    @property
    def primary_key(self) -> ConstraintDef | None:
        for constraint in self.constraints:
            if constraint.kind is ConstraintKind.PRIMARY_KEY:
                return constraint
        return None


@dataclass(frozen=True)
class ModuleDef:
    """
    A view or routine whose body is stored verbatim in the catalog.

    Attributes:
        ref: Object identity.
        definition: Defining text as returned by the catalog, or None when it
            is not available (for example WITH ENCRYPTION modules).
        references: (schema, name) pairs the definition depends on.
    """

    ref: DatabaseObjectRef
    definition: str | None
    references: frozenset[tuple[str, str]] = frozenset()
    properties: tuple[ExtendedProperty, ...] = ()
    is_system: bool = False


ViewDef = ModuleDef
RoutineDef = ModuleDef

ObjectDef = TableDef | ModuleDef


@dataclass(frozen=True)
class ObjectGraph:
    """
    Selected definitions plus the dependency set of each object.

    `definitions` keeps catalog enumeration order, which the resolver uses to
    break ties. `dependencies` must be created first; `preferences` (tables
    referenced by foreign keys or by triggers) are honoured when they do not
    form a cycle. Both only point at refs present in the graph.
    """

    definitions: Mapping[DatabaseObjectRef, ObjectDef]
    dependencies: Mapping[DatabaseObjectRef, frozenset[DatabaseObjectRef]] = field(
        default_factory=dict
    )
    preferences: Mapping[DatabaseObjectRef, frozenset[DatabaseObjectRef]] = field(
        default_factory=dict
    )

    def __len__(self) -> int:
        return len(self.definitions)

    def refs(self) -> list[DatabaseObjectRef]:
        return list(self.definitions)

    def depends_on(self, ref: DatabaseObjectRef) -> frozenset[DatabaseObjectRef]:
        return self.dependencies.get(ref, frozenset())

    def preferred_after(self, ref: DatabaseObjectRef) -> frozenset[DatabaseObjectRef]:
        return self.preferences.get(ref, frozenset())
