"""DDL generation for tables, views and routines.

`generate` walks objects in dependency order and yields one batch (a single
statement, possibly spanning several lines) at a time. Like the SMO scripter
it mirrors, every CREATE is preceded by the session settings it was defined
under; the emission filter strips those again.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Iterator

from wdbschema.core.errors import GenerationError
from wdbschema.core.models import (
    ColumnDef,
    ConstraintDef,
    ConstraintKind,
    DatabaseObjectRef,
    ExtendedProperty,
    IndexDef,
    ModuleDef,
    ObjectGraph,
    TableDef,
    quote_name,
)

logger = logging.getLogger(__name__)

SESSION_SETTINGS = ("SET ANSI_NULLS ON", "SET QUOTED_IDENTIFIER ON")


@dataclass(frozen=True)
class ScriptOptions:
    """
    Scripting options.

    The defaults are the options the CLI scripts with: schema only, all
    dependent table parts included, collations left out for portability.
    """

    include_indexes: bool = True
    include_extended_properties: bool = True
    include_triggers: bool = True
    include_constraints: bool = True
    script_data: bool = False
    no_collation: bool = True
    allow_system_objects: bool = False


def _literal(value: str) -> str:
    """Render an N'' string literal."""
    return "N'" + value.replace("'", "''") + "'"


def _key_list(columns: Iterable[str], descending: Iterable[bool]) -> str:
    return ", ".join(
        f"{quote_name(c)} {'DESC' if d else 'ASC'}" for c, d in zip(columns, descending)
    )


def _name_list(columns: Iterable[str]) -> str:
    return ", ".join(quote_name(c) for c in columns)


def _parenthesized(expression: str) -> str:
    expression = expression.strip()
    return expression if expression.startswith("(") else f"({expression})"


def column_clause(column: ColumnDef, options: ScriptOptions) -> str:
    """Render one column definition line (without indentation or comma)."""
    name = quote_name(column.name)
    if column.computed is not None:
        parts = [name, "AS", column.computed]
        if column.persisted:
            parts.append("PERSISTED")
            if not column.nullable:
                parts.append("NOT NULL")
        return " ".join(parts)

    parts = [name, column.data_type.render()]
    if column.collation and not options.no_collation:
        parts.append(f"COLLATE {column.collation}")
    if column.identity is not None:
        seed, increment = column.identity
        parts.append(f"IDENTITY({seed},{increment})")
    if column.rowguidcol:
        parts.append("ROWGUIDCOL")
    parts.append("NULL" if column.nullable else "NOT NULL")
    if options.include_constraints and column.default is not None:
        if not column.default.expression:
            raise GenerationError(
                f"Default constraint '{column.default.name}' has no expression."
            )
        parts.append(
            f"CONSTRAINT {quote_name(column.default.name)} DEFAULT {column.default.expression}"
        )
    return " ".join(parts)


def constraint_clause(constraint: ConstraintDef) -> str:
    """Render a trailing CREATE TABLE constraint clause (without leading space)."""
    head = f"CONSTRAINT {quote_name(constraint.name)}"
    kind = constraint.kind

    if kind in (ConstraintKind.PRIMARY_KEY, ConstraintKind.UNIQUE):
        if not constraint.columns:
            raise GenerationError(f"Constraint '{constraint.name}' has no columns.")
        descending = constraint.descending or (False,) * len(constraint.columns)
        clustered = "CLUSTERED" if constraint.clustered else "NONCLUSTERED"
        return f"{head} {kind.value} {clustered} ({_key_list(constraint.columns, descending)})"

    if kind is ConstraintKind.CHECK:
        if not constraint.expression:
            raise GenerationError(f"Check constraint '{constraint.name}' has no expression.")
        return f"{head} CHECK {_parenthesized(constraint.expression)}"

    raise GenerationError(f"Unsupported trailing constraint kind: {kind.value}")


def add_foreign_key(table: DatabaseObjectRef, constraint: ConstraintDef) -> str:
    """Render the ALTER TABLE statement that adds a foreign key."""
    if constraint.referenced is None or not constraint.columns:
        raise GenerationError(f"Foreign key '{constraint.name}' is incomplete.")
    if len(constraint.columns) != len(constraint.referenced_columns):
        raise GenerationError(f"Foreign key '{constraint.name}' has mismatched column lists.")
    check = "NOCHECK" if constraint.is_disabled else "CHECK"
    stmt = (
        f"ALTER TABLE {table.qualified_name} WITH {check} "
        f"ADD CONSTRAINT {quote_name(constraint.name)} "
        f"FOREIGN KEY ({_name_list(constraint.columns)}) "
        f"REFERENCES {constraint.referenced.qualified_name} "
        f"({_name_list(constraint.referenced_columns)})"
    )
    if constraint.on_delete:
        stmt += f" ON DELETE {constraint.on_delete}"
    if constraint.on_update:
        stmt += f" ON UPDATE {constraint.on_update}"
    return stmt


def _inline_constraints(table: TableDef) -> list[ConstraintDef]:
    return [c for c in table.constraints if c.kind is not ConstraintKind.FOREIGN_KEY]


def _foreign_keys(table: TableDef) -> list[ConstraintDef]:
    return [c for c in table.constraints if c.kind is ConstraintKind.FOREIGN_KEY]


def create_table(table: TableDef, options: ScriptOptions) -> str:
    """
    Render the CREATE TABLE statement for a table.

    Foreign keys are not part of it; see `add_foreign_key`.
    """
    if not table.columns:
        raise GenerationError(f"Table {table.ref} has no columns in the catalog.")

    lines = [f"\t{column_clause(c, options)}" for c in table.columns]
    if options.include_constraints:
        lines.extend(f" {constraint_clause(c)}" for c in _inline_constraints(table))
    body = ",\n".join(lines)
    return f"CREATE TABLE {table.ref.qualified_name}(\n{body}\n)"


def create_index(table: TableDef, index: IndexDef) -> str:
    """Render a CREATE INDEX statement."""
    if not index.columns:
        raise GenerationError(f"Index '{index.name}' on {table.ref} has no key columns.")
    unique = "UNIQUE " if index.unique else ""
    clustered = "CLUSTERED" if index.clustered else "NONCLUSTERED"
    stmt = (
        f"CREATE {unique}{clustered} INDEX {quote_name(index.name)} "
        f"ON {table.ref.qualified_name}"
        f"({_key_list((c for c, _ in index.columns), (d for _, d in index.columns))})"
    )
    if index.included:
        stmt += f" INCLUDE({_name_list(index.included)})"
    if index.filter:
        stmt += f" WHERE {index.filter}"
    return stmt


def add_extended_property(ref: DatabaseObjectRef, prop: ExtendedProperty) -> str:
    """Render an sp_addextendedproperty call for an object or column property."""
    stmt = (
        f"EXEC sys.sp_addextendedproperty @name={_literal(prop.name)}, "
        f"@value={_literal(prop.value)} , "
        f"@level0type=N'SCHEMA',@level0name={_literal(ref.schema)}, "
        f"@level1type=N'{ref.kind.value}',@level1name={_literal(ref.name)}"
    )
    if prop.column:
        stmt += f", @level2type=N'COLUMN',@level2name={_literal(prop.column)}"
    return stmt


def _module_body(ref: DatabaseObjectRef, text: str | None, what: str) -> str:
    if text is None or not text.strip():
        raise GenerationError(
            f"Definition of {what} {ref} is not available (the module may be encrypted)."
        )
    return text.rstrip()


def _nocheck(table: DatabaseObjectRef, constraint: ConstraintDef) -> str:
    return f"ALTER TABLE {table.qualified_name} NOCHECK CONSTRAINT {quote_name(constraint.name)}"


def _table_batches(table: TableDef, options: ScriptOptions) -> Iterator[str]:
    yield from SESSION_SETTINGS
    yield create_table(table, options)

    if options.include_constraints:
        for constraint in _inline_constraints(table):
            if constraint.is_disabled:
                yield _nocheck(table.ref, constraint)

    if options.include_indexes:
        for index in table.indexes:
            yield create_index(table, index)

    if options.include_triggers:
        for trigger in table.triggers:
            yield from SESSION_SETTINGS
            yield _module_body(table.ref, trigger.definition, f"trigger [{trigger.name}] on")
            if trigger.is_disabled:
                yield (
                    f"ALTER TABLE {table.ref.qualified_name} "
                    f"DISABLE TRIGGER {quote_name(trigger.name)}"
                )

    if options.include_extended_properties:
        for prop in table.properties:
            yield add_extended_property(table.ref, prop)


def _foreign_key_batches(table: DatabaseObjectRef, constraint: ConstraintDef) -> Iterator[str]:
    yield add_foreign_key(table, constraint)
    if constraint.is_disabled:
        yield _nocheck(table, constraint)


def _module_batches(module: ModuleDef, options: ScriptOptions) -> Iterator[str]:
    yield from SESSION_SETTINGS
    yield _module_body(module.ref, module.definition, module.ref.kind.value.lower())
    if options.include_extended_properties:
        for prop in module.properties:
            yield add_extended_property(module.ref, prop)


def generate(
    ordered_refs: Iterable[DatabaseObjectRef],
    graph: ObjectGraph,
    options: ScriptOptions | None = None,
) -> Iterator[str]:
    """
    Lazily yield DDL batches for the ordered objects.

    A table's foreign keys follow its own batches when the referenced table
    already exists or is outside the graph. Foreign keys to tables scripted
    later wait for them; those whose table is never reached come at the end.

    The returned iterator is single-pass. Errors surface while iterating.

    Raises:
        GenerationError: If data scripting is requested, or an object's
            metadata is malformed or unsupported.
    """
    options = options or ScriptOptions()
    if options.script_data:
        raise GenerationError("Scripting table data is not supported.")

    created: set[DatabaseObjectRef] = set()
    waiting: dict[DatabaseObjectRef, list[tuple[DatabaseObjectRef, ConstraintDef]]] = {}

    for ref in ordered_refs:
        try:
            definition = graph.definitions[ref]
        except KeyError as exc:
            raise GenerationError(f"Object {ref} is not part of the loaded catalog.") from exc

        if definition.is_system and not options.allow_system_objects:
            logger.debug("Skipping system object %s", ref)
            continue

        logger.debug("Scripting %s %s", ref.kind.value.lower(), ref)
        if not isinstance(definition, TableDef):
            yield from _module_batches(definition, options)
            continue

        yield from _table_batches(definition, options)
        created.add(ref)
        if not options.include_constraints:
            continue

        ready = waiting.pop(ref, [])
        for fk in _foreign_keys(definition):
            target = fk.referenced
            if target in created or target not in graph.definitions:
                ready.append((ref, fk))
            else:
                waiting.setdefault(target, []).append((ref, fk))
        for table, fk in ready:
            yield from _foreign_key_batches(table, fk)

    # referenced tables that were skipped or not in the ordered refs
    for pending in waiting.values():
        for table, fk in pending:
            yield from _foreign_key_batches(table, fk)
