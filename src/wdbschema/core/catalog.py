"""Catalog loading: from raw catalog rows to an ObjectGraph.

The loader enumerates the objects a selector may want, applies the selector,
drops system objects and then assembles typed definitions for the selection
only. It is free of SQL and driver concerns; those live in the adapter.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Iterable, Protocol

from wdbschema.core.errors import NoObjectsSelectedError
from wdbschema.core.models import (
    ColumnDef,
    ConstraintDef,
    ConstraintKind,
    DatabaseObjectRef,
    DataType,
    ExtendedProperty,
    IndexDef,
    ModuleDef,
    ObjectDef,
    ObjectGraph,
    ObjectKind,
    TableDef,
    TriggerDef,
)
from wdbschema.core.selectors import ObjectSelector

logger = logging.getLogger(__name__)

Row = dict[str, Any]
_Key = tuple[str, str]

_ROUTINE_KINDS = (ObjectKind.VIEW, ObjectKind.PROCEDURE, ObjectKind.FUNCTION)


class CatalogAdapter(Protocol):
    """Interface for catalog queries used by the loader."""

    def list_tables(self) -> list[Row]:
        """Return table rows (schema_name, table_name, is_ms_shipped)."""
        ...

    def list_columns(self) -> list[Row]:
        ...

    def list_key_constraints(self) -> list[Row]:
        ...

    def list_indexes(self) -> list[Row]:
        ...

    def list_foreign_keys(self) -> list[Row]:
        ...

    def list_check_constraints(self) -> list[Row]:
        ...

    def list_triggers(self) -> list[Row]:
        ...

    def list_modules(self, kind: ObjectKind) -> list[Row]:
        """Return module rows (schema_name, object_name, is_ms_shipped, definition)."""
        ...

    def list_extended_properties(self) -> list[Row]:
        ...

    def list_dependencies(self) -> list[Row]:
        ...


def _group(rows: Iterable[Row], *fields: str) -> dict[tuple, list[Row]]:
    """Group rows by the given fields, keeping row order within each group."""
    grouped: dict[tuple, list[Row]] = defaultdict(list)
    for row in rows:
        grouped[tuple(row[f] for f in fields)].append(row)
    return grouped


def _action(desc: str | None) -> str | None:
    """Map a referential action description (e.g. SET_NULL) to DDL text."""
    if not desc or desc.upper() == "NO_ACTION":
        return None
    return desc.upper().replace("_", " ")


def _column(row: Row) -> ColumnDef:
    data_type = DataType.from_catalog(
        row["type_name"],
        max_length=row.get("max_length"),
        precision=row.get("precision"),
        scale=row.get("scale"),
        schema=row.get("type_schema"),
        is_user_defined=bool(row.get("is_user_defined")),
    )
    identity = None
    if row.get("is_identity"):
        identity = (str(row.get("identity_seed") or 1), str(row.get("identity_increment") or 1))
    default = None
    if row.get("default_name"):
        default = ConstraintDef(
            kind=ConstraintKind.DEFAULT,
            name=row["default_name"],
            columns=(row["column_name"],),
            expression=row.get("default_definition"),
        )
    return ColumnDef(
        name=row["column_name"],
        data_type=data_type,
        nullable=bool(row.get("is_nullable")),
        identity=identity,
        computed=row.get("computed_definition") if row.get("is_computed") else None,
        persisted=bool(row.get("is_persisted")),
        default=default,
        collation=row.get("collation_name"),
        rowguidcol=bool(row.get("is_rowguidcol")),
    )


def _key_constraints(rows: list[Row]) -> list[ConstraintDef]:
    out: list[ConstraintDef] = []
    for (name,), cols in _group(rows, "constraint_name").items():
        first = cols[0]
        kind = (
            ConstraintKind.PRIMARY_KEY
            if str(first["constraint_type"]).strip().upper() == "PK"
            else ConstraintKind.UNIQUE
        )
        out.append(
            ConstraintDef(
                kind=kind,
                name=name,
                columns=tuple(c["column_name"] for c in cols),
                descending=tuple(bool(c.get("is_descending_key")) for c in cols),
                clustered=str(first.get("index_type") or "").upper() == "CLUSTERED",
            )
        )
    # primary key first, then unique constraints
    out.sort(key=lambda c: c.kind is not ConstraintKind.PRIMARY_KEY)
    return out


def _foreign_keys(rows: list[Row]) -> list[ConstraintDef]:
    out: list[ConstraintDef] = []
    for (name,), cols in _group(rows, "constraint_name").items():
        first = cols[0]
        out.append(
            ConstraintDef(
                kind=ConstraintKind.FOREIGN_KEY,
                name=name,
                columns=tuple(c["column_name"] for c in cols),
                referenced=DatabaseObjectRef(
                    ObjectKind.TABLE, first["referenced_schema"], first["referenced_table"]
                ),
                referenced_columns=tuple(c["referenced_column"] for c in cols),
                on_delete=_action(first.get("on_delete")),
                on_update=_action(first.get("on_update")),
                is_disabled=bool(first.get("is_disabled")),
            )
        )
    return out


def _indexes(rows: list[Row]) -> list[IndexDef]:
    out: list[IndexDef] = []
    for (name,), cols in _group(rows, "index_name").items():
        first = cols[0]
        out.append(
            IndexDef(
                name=name,
                columns=tuple(
                    (c["column_name"], bool(c.get("is_descending_key")))
                    for c in cols
                    if not c.get("is_included_column")
                ),
                included=tuple(c["column_name"] for c in cols if c.get("is_included_column")),
                unique=bool(first.get("is_unique")),
                clustered=str(first.get("index_type") or "").upper() == "CLUSTERED",
                filter=first.get("filter_definition"),
            )
        )
    return out


def _properties(rows: list[Row]) -> tuple[ExtendedProperty, ...]:
    return tuple(
        ExtendedProperty(
            name=r["property_name"],
            value="" if r.get("property_value") is None else str(r["property_value"]),
            column=r.get("column_name"),
        )
        for r in rows
    )


class _TableRows:
    """Per-table catalog rows, fetched once for the whole database."""

    def __init__(self, adapter: CatalogAdapter) -> None:
        self.columns = _group(adapter.list_columns(), "schema_name", "table_name")
        self.keys = _group(adapter.list_key_constraints(), "schema_name", "table_name")
        self.indexes = _group(adapter.list_indexes(), "schema_name", "table_name")
        self.foreign_keys = _group(adapter.list_foreign_keys(), "schema_name", "table_name")
        self.checks = _group(adapter.list_check_constraints(), "schema_name", "table_name")
        self.triggers = _group(adapter.list_triggers(), "schema_name", "table_name")

    def build(
        self,
        ref: DatabaseObjectRef,
        *,
        properties: tuple[ExtendedProperty, ...],
        is_system: bool,
    ) -> TableDef:
        key = (ref.schema, ref.name)
        constraints = [
            *_key_constraints(self.keys.get(key, [])),
            *_foreign_keys(self.foreign_keys.get(key, [])),
            *(
                ConstraintDef(
                    kind=ConstraintKind.CHECK,
                    name=r["constraint_name"],
                    expression=r.get("definition"),
                    is_disabled=bool(r.get("is_disabled")),
                )
                for r in self.checks.get(key, [])
            ),
        ]
        return TableDef(
            ref=ref,
            columns=tuple(_column(r) for r in self.columns.get(key, [])),
            indexes=tuple(_indexes(self.indexes.get(key, []))),
            constraints=tuple(constraints),
            triggers=tuple(
                TriggerDef(
                    name=r["trigger_name"],
                    definition=r.get("definition"),
                    is_disabled=bool(r.get("is_disabled")),
                )
                for r in self.triggers.get(key, [])
            ),
            properties=properties,
            is_system=is_system,
        )


def _enumerate(
    adapter: CatalogAdapter, selector: ObjectSelector
) -> tuple[list[DatabaseObjectRef], dict[DatabaseObjectRef, Row]]:
    """Return catalog refs in enumeration order plus their raw rows."""
    refs: list[DatabaseObjectRef] = []
    rows: dict[DatabaseObjectRef, Row] = {}

    if selector.wants(ObjectKind.TABLE):
        for row in adapter.list_tables():
            ref = DatabaseObjectRef(ObjectKind.TABLE, row["schema_name"], row["table_name"])
            refs.append(ref)
            rows[ref] = row

    for kind in _ROUTINE_KINDS:
        if not selector.wants(kind):
            continue
        for row in adapter.list_modules(kind):
            ref = DatabaseObjectRef(kind, row["schema_name"], row["object_name"])
            refs.append(ref)
            rows[ref] = row

    return refs, rows


def _resolve_reference(
    referencing: DatabaseObjectRef,
    schema: str | None,
    name: str,
    by_name: dict[_Key, DatabaseObjectRef],
) -> DatabaseObjectRef | None:
    """Resolve a (possibly unqualified) reference against the selected objects."""
    if schema:
        return by_name.get((schema, name))
    # unqualified names resolve in the referencing object's schema, then dbo
    return by_name.get((referencing.schema, name)) or by_name.get(("dbo", name))


def load_objects(
    adapter: CatalogAdapter,
    selector: ObjectSelector,
    *,
    include_system: bool = False,
) -> ObjectGraph:
    """
    Load the selected objects and their dependencies into an ObjectGraph.

    Args:
        adapter: Catalog adapter bound to the target database.
        selector: Decides which objects are scripted.
        include_system: Keep objects flagged `is_ms_shipped`.

    Returns:
        A non-empty ObjectGraph in catalog enumeration order.

    Raises:
        ObjectNotFoundError: If the selector names an object that does not exist.
        NoObjectsSelectedError: If nothing is left to script.
    """
    refs, rows = _enumerate(adapter, selector)
    selected = selector.select(refs)

    if not include_system:
        skipped = [r for r in selected if rows[r].get("is_ms_shipped")]
        if skipped:
            logger.info("Skipping %d system object(s)", len(skipped))
        selected = [r for r in selected if not rows[r].get("is_ms_shipped")]

    if not selected:
        raise NoObjectsSelectedError()

    logger.info("Selected %d object(s) for scripting", len(selected))

    properties = _group(adapter.list_extended_properties(), "schema_name", "object_name")
    references: dict[_Key, set[tuple[str | None, str]]] = defaultdict(set)
    trigger_references: dict[_Key, set[tuple[str | None, str]]] = defaultdict(set)
    for row in adapter.list_dependencies():
        # trigger rows are keyed by the parent table
        target = trigger_references if row.get("is_trigger") else references
        target[(row["schema_name"], row["object_name"])].add(
            (row.get("referenced_schema"), row["referenced_name"])
        )

    table_rows: _TableRows | None = None
    definitions: dict[DatabaseObjectRef, ObjectDef] = {}
    for ref in selected:
        key = (ref.schema, ref.name)
        props = _properties(properties.get(key, []))
        is_system = bool(rows[ref].get("is_ms_shipped"))
        if ref.kind is ObjectKind.TABLE:
            if table_rows is None:
                table_rows = _TableRows(adapter)
            definitions[ref] = table_rows.build(ref, properties=props, is_system=is_system)
        else:
            definitions[ref] = ModuleDef(
                ref=ref,
                definition=rows[ref].get("definition"),
                references=frozenset(
                    (schema or ref.schema, name) for schema, name in references.get(key, ())
                ),
                properties=props,
                is_system=is_system,
            )

    by_name: dict[_Key, DatabaseObjectRef] = {(r.schema, r.name): r for r in definitions}

    def resolve(
        ref: DatabaseObjectRef, pairs: Iterable[tuple[str | None, str]]
    ) -> set[DatabaseObjectRef]:
        found = {_resolve_reference(ref, schema, name, by_name) for schema, name in pairs}
        found.discard(None)
        # self references (hierarchies, recursive routines) do not constrain order
        found.discard(ref)
        return found

    dependencies: dict[DatabaseObjectRef, frozenset[DatabaseObjectRef]] = {}
    preferences: dict[DatabaseObjectRef, frozenset[DatabaseObjectRef]] = {}
    for ref, definition in definitions.items():
        key = (ref.schema, ref.name)
        deps = resolve(ref, references.get(key, ()))
        dependencies[ref] = frozenset(deps)
        if isinstance(definition, TableDef):
            # foreign keys are added after CREATE TABLE, so they only shape the order
            preferred = resolve(ref, trigger_references.get(key, ()))
            preferred.update(
                c.referenced
                for c in definition.constraints
                if c.referenced in definitions and c.referenced != ref
            )
            preferences[ref] = frozenset(preferred - deps)

    return ObjectGraph(
        definitions=definitions, dependencies=dependencies, preferences=preferences
    )
