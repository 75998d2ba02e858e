from __future__ import annotations

import logging
from typing import Any

from wdbschema.core.connection import ServerConnection
from wdbschema.core.models import ObjectKind

logger = logging.getLogger(__name__)

Row = dict[str, Any]

# sys.objects.type codes per module kind; CLR functions (FS, FT) carry no T-SQL body
_MODULE_TYPES: dict[ObjectKind, tuple[str, ...]] = {
    ObjectKind.VIEW: ("V",),
    ObjectKind.PROCEDURE: ("P",),
    ObjectKind.FUNCTION: ("FN", "IF", "TF"),
}

_TABLES_SQL = """
SELECT s.name AS schema_name, t.name AS table_name, t.is_ms_shipped
FROM sys.tables t
JOIN sys.schemas s ON s.schema_id = t.schema_id
ORDER BY s.name, t.name
"""

_COLUMNS_SQL = """
SELECT s.name AS schema_name, t.name AS table_name, c.name AS column_name,
       ty.name AS type_name, ty.is_user_defined, ts.name AS type_schema,
       c.max_length, c.precision, c.scale, c.is_nullable, c.is_identity,
       CAST(ic.seed_value AS NVARCHAR(128)) AS identity_seed,
       CAST(ic.increment_value AS NVARCHAR(128)) AS identity_increment,
       c.is_computed, cc.definition AS computed_definition, cc.is_persisted,
       dc.name AS default_name, dc.definition AS default_definition,
       c.collation_name, c.is_rowguidcol
FROM sys.columns c
JOIN sys.tables t ON t.object_id = c.object_id
JOIN sys.schemas s ON s.schema_id = t.schema_id
JOIN sys.types ty ON ty.user_type_id = c.user_type_id
JOIN sys.schemas ts ON ts.schema_id = ty.schema_id
LEFT JOIN sys.identity_columns ic ON ic.object_id = c.object_id AND ic.column_id = c.column_id
LEFT JOIN sys.computed_columns cc ON cc.object_id = c.object_id AND cc.column_id = c.column_id
LEFT JOIN sys.default_constraints dc ON dc.object_id = c.default_object_id
ORDER BY s.name, t.name, c.column_id
"""

_KEY_CONSTRAINTS_SQL = """
SELECT s.name AS schema_name, t.name AS table_name, kc.name AS constraint_name,
       kc.type AS constraint_type, i.type_desc AS index_type,
       c.name AS column_name, ic.is_descending_key
FROM sys.key_constraints kc
JOIN sys.tables t ON t.object_id = kc.parent_object_id
JOIN sys.schemas s ON s.schema_id = t.schema_id
JOIN sys.indexes i ON i.object_id = kc.parent_object_id AND i.index_id = kc.unique_index_id
JOIN sys.index_columns ic ON ic.object_id = i.object_id AND ic.index_id = i.index_id
JOIN sys.columns c ON c.object_id = ic.object_id AND c.column_id = ic.column_id
WHERE ic.key_ordinal > 0
ORDER BY s.name, t.name, kc.type, kc.name, ic.key_ordinal
"""

_INDEXES_SQL = """
SELECT s.name AS schema_name, t.name AS table_name, i.name AS index_name,
       i.is_unique, i.type_desc AS index_type, i.filter_definition,
       c.name AS column_name, ic.is_descending_key, ic.is_included_column
FROM sys.indexes i
JOIN sys.tables t ON t.object_id = i.object_id
JOIN sys.schemas s ON s.schema_id = t.schema_id
JOIN sys.index_columns ic ON ic.object_id = i.object_id AND ic.index_id = i.index_id
JOIN sys.columns c ON c.object_id = ic.object_id AND c.column_id = ic.column_id
WHERE i.is_primary_key = 0 AND i.is_unique_constraint = 0
  AND i.is_hypothetical = 0 AND i.type IN (1, 2)
ORDER BY s.name, t.name, i.name, ic.is_included_column, ic.key_ordinal, ic.index_column_id
"""

_FOREIGN_KEYS_SQL = """
SELECT s.name AS schema_name, t.name AS table_name, fk.name AS constraint_name,
       rs.name AS referenced_schema, rt.name AS referenced_table,
       pc.name AS column_name, rc.name AS referenced_column,
       fk.delete_referential_action_desc AS on_delete,
       fk.update_referential_action_desc AS on_update, fk.is_disabled
FROM sys.foreign_keys fk
JOIN sys.foreign_key_columns fkc ON fkc.constraint_object_id = fk.object_id
JOIN sys.tables t ON t.object_id = fk.parent_object_id
JOIN sys.schemas s ON s.schema_id = t.schema_id
JOIN sys.tables rt ON rt.object_id = fk.referenced_object_id
JOIN sys.schemas rs ON rs.schema_id = rt.schema_id
JOIN sys.columns pc ON pc.object_id = fkc.parent_object_id AND pc.column_id = fkc.parent_column_id
JOIN sys.columns rc ON rc.object_id = fkc.referenced_object_id AND rc.column_id = fkc.referenced_column_id
ORDER BY s.name, t.name, fk.name, fkc.constraint_column_id
"""

_CHECK_CONSTRAINTS_SQL = """
SELECT s.name AS schema_name, t.name AS table_name, cc.name AS constraint_name,
       cc.definition, cc.is_disabled
FROM sys.check_constraints cc
JOIN sys.tables t ON t.object_id = cc.parent_object_id
JOIN sys.schemas s ON s.schema_id = t.schema_id
ORDER BY s.name, t.name, cc.name
"""

_TRIGGERS_SQL = """
SELECT s.name AS schema_name, t.name AS table_name, tr.name AS trigger_name,
       OBJECT_DEFINITION(tr.object_id) AS definition, tr.is_disabled
FROM sys.triggers tr
JOIN sys.tables t ON t.object_id = tr.parent_id
JOIN sys.schemas s ON s.schema_id = t.schema_id
WHERE tr.is_ms_shipped = 0
ORDER BY s.name, t.name, tr.name
"""

_MODULES_SQL = """
SELECT s.name AS schema_name, o.name AS object_name, o.type, o.is_ms_shipped,
       m.definition
FROM sys.objects o
JOIN sys.schemas s ON s.schema_id = o.schema_id
LEFT JOIN sys.sql_modules m ON m.object_id = o.object_id
WHERE o.type IN ({types})
ORDER BY s.name, o.name
"""

_EXTENDED_PROPERTIES_SQL = """
SELECT s.name AS schema_name, o.name AS object_name, c.name AS column_name,
       ep.name AS property_name, CAST(ep.value AS NVARCHAR(MAX)) AS property_value
FROM sys.extended_properties ep
JOIN sys.objects o ON o.object_id = ep.major_id
JOIN sys.schemas s ON s.schema_id = o.schema_id
LEFT JOIN sys.columns c ON ep.minor_id > 0 AND c.object_id = ep.major_id AND c.column_id = ep.minor_id
WHERE ep.class = 1
ORDER BY s.name, o.name, ep.minor_id, ep.name
"""

_DEPENDENCIES_SQL = """
SELECT DISTINCT COALESCE(ps.name, s.name) AS schema_name,
       COALESCE(po.name, o.name) AS object_name,
       CAST(CASE WHEN o.type = 'TR' THEN 1 ELSE 0 END AS bit) AS is_trigger,
       COALESCE(d.referenced_schema_name, rs.name) AS referenced_schema,
       d.referenced_entity_name AS referenced_name
FROM sys.sql_expression_dependencies d
JOIN sys.objects o ON o.object_id = d.referencing_id
JOIN sys.schemas s ON s.schema_id = o.schema_id
-- triggers and check/default constraints are attributed to their table
LEFT JOIN sys.objects po ON po.object_id = o.parent_object_id AND o.type IN ('TR', 'C', 'D')
LEFT JOIN sys.schemas ps ON ps.schema_id = po.schema_id
LEFT JOIN sys.objects ro ON ro.object_id = d.referenced_id
LEFT JOIN sys.schemas rs ON rs.schema_id = ro.schema_id
WHERE d.referenced_server_name IS NULL AND d.referenced_database_name IS NULL
ORDER BY schema_name, object_name
"""


class SqlServerCatalogAdapter:
    """Adapter around SQL Server catalog views (tables/columns/keys/modules)."""

    def __init__(self, conn: ServerConnection) -> None:
        self.conn = conn

    def _rows(self, what: str, sql: str) -> list[Row]:
        rows = self.conn.query(sql)
        logger.debug("Loaded %d %s row(s) from %s", len(rows), what, self.conn.database)
        return rows

    def list_tables(self) -> list[Row]:
        """List user and system tables in catalog order."""
        return self._rows("table", _TABLES_SQL)

    def list_columns(self) -> list[Row]:
        """List columns of every table, ordered by table then column_id."""
        return self._rows("column", _COLUMNS_SQL)

    def list_key_constraints(self) -> list[Row]:
        """List PRIMARY KEY and UNIQUE constraint columns in key order."""
        return self._rows("key constraint", _KEY_CONSTRAINTS_SQL)

    def list_indexes(self) -> list[Row]:
        """List clustered/nonclustered indexes not backing a key constraint."""
        return self._rows("index", _INDEXES_SQL)

    def list_foreign_keys(self) -> list[Row]:
        """List foreign key column pairs in constraint column order."""
        return self._rows("foreign key", _FOREIGN_KEYS_SQL)

    def list_check_constraints(self) -> list[Row]:
        return self._rows("check constraint", _CHECK_CONSTRAINTS_SQL)

    def list_triggers(self) -> list[Row]:
        return self._rows("trigger", _TRIGGERS_SQL)

    def list_modules(self, kind: ObjectKind) -> list[Row]:
        """List views, procedures or functions with their stored definition."""
        types = ", ".join(f"'{t}'" for t in _MODULE_TYPES[kind])
        return self._rows(kind.value.lower(), _MODULES_SQL.format(types=types))

    def list_extended_properties(self) -> list[Row]:
        return self._rows("extended property", _EXTENDED_PROPERTIES_SQL)

    def list_dependencies(self) -> list[Row]:
        """
        List object-to-object references recorded by the server.

        References made by triggers and by check/default constraints are
        reported against the parent table; `is_trigger` marks trigger rows.
        """
        return self._rows("dependency", _DEPENDENCIES_SQL)
