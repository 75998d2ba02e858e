from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure tests always import the local src tree, not an older installed wheel.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))

from wdbschema.core.models import ObjectKind  # noqa: E402


def column_row(
    schema: str,
    table: str,
    name: str,
    type_name: str = "int",
    *,
    nullable: bool = False,
    max_length: int | None = 4,
    precision: int | None = 10,
    scale: int | None = 0,
    identity: tuple[str, str] | None = None,
    default: tuple[str, str] | None = None,
    computed: str | None = None,
    collation: str | None = None,
) -> dict:
    return {
        "schema_name": schema,
        "table_name": table,
        "column_name": name,
        "type_name": type_name,
        "is_user_defined": False,
        "type_schema": "sys",
        "max_length": max_length,
        "precision": precision,
        "scale": scale,
        "is_nullable": nullable,
        "is_identity": identity is not None,
        "identity_seed": identity[0] if identity else None,
        "identity_increment": identity[1] if identity else None,
        "is_computed": computed is not None,
        "computed_definition": computed,
        "is_persisted": False,
        "default_name": default[0] if default else None,
        "default_definition": default[1] if default else None,
        "collation_name": collation,
        "is_rowguidcol": False,
    }


class FakeCatalog:
    """In-memory stand-in for SqlServerCatalogAdapter returning catalog rows."""

    def __init__(self) -> None:
        self.tables: list[dict] = []
        self.columns: list[dict] = []
        self.key_constraints: list[dict] = []
        self.indexes: list[dict] = []
        self.foreign_keys: list[dict] = []
        self.check_constraints: list[dict] = []
        self.triggers: list[dict] = []
        self.modules: dict[ObjectKind, list[dict]] = {
            ObjectKind.VIEW: [],
            ObjectKind.PROCEDURE: [],
            ObjectKind.FUNCTION: [],
        }
        self.extended_properties: list[dict] = []
        self.dependencies: list[dict] = []
        self.calls: list[str] = []

    # builders

    def add_table(self, schema: str, name: str, *columns: dict, system: bool = False) -> None:
        self.tables.append(
            {"schema_name": schema, "table_name": name, "is_ms_shipped": system}
        )
        self.columns.extend(columns)

    def add_key(
        self,
        schema: str,
        table: str,
        name: str,
        columns: list[str],
        *,
        primary: bool = True,
        clustered: bool = True,
    ) -> None:
        for col in columns:
            self.key_constraints.append(
                {
                    "schema_name": schema,
                    "table_name": table,
                    "constraint_name": name,
                    "constraint_type": "PK" if primary else "UQ",
                    "index_type": "CLUSTERED" if clustered else "NONCLUSTERED",
                    "column_name": col,
                    "is_descending_key": False,
                }
            )

    def add_foreign_key(
        self,
        schema: str,
        table: str,
        name: str,
        column: str,
        ref_schema: str,
        ref_table: str,
        ref_column: str,
        *,
        on_delete: str = "NO_ACTION",
    ) -> None:
        self.foreign_keys.append(
            {
                "schema_name": schema,
                "table_name": table,
                "constraint_name": name,
                "referenced_schema": ref_schema,
                "referenced_table": ref_table,
                "column_name": column,
                "referenced_column": ref_column,
                "on_delete": on_delete,
                "on_update": "NO_ACTION",
                "is_disabled": False,
            }
        )

    def add_module(
        self,
        kind: ObjectKind,
        schema: str,
        name: str,
        definition: str | None,
        *,
        references: tuple[tuple[str | None, str], ...] = (),
        system: bool = False,
    ) -> None:
        self.modules[kind].append(
            {
                "schema_name": schema,
                "object_name": name,
                "type": {"VIEW": "V", "PROCEDURE": "P", "FUNCTION": "FN"}[kind.value],
                "is_ms_shipped": system,
                "definition": definition,
            }
        )
        self.add_references(schema, name, *references)

    def add_references(
        self,
        schema: str,
        name: str,
        *references: tuple[str | None, str],
        trigger: bool = False,
    ) -> None:
        for ref_schema, ref_name in references:
            self.dependencies.append(
                {
                    "schema_name": schema,
                    "object_name": name,
                    "is_trigger": trigger,
                    "referenced_schema": ref_schema,
                    "referenced_name": ref_name,
                }
            )

    # adapter interface

    def list_tables(self) -> list[dict]:
        self.calls.append("tables")
        return self.tables

    def list_columns(self) -> list[dict]:
        self.calls.append("columns")
        return self.columns

    def list_key_constraints(self) -> list[dict]:
        return self.key_constraints

    def list_indexes(self) -> list[dict]:
        return self.indexes

    def list_foreign_keys(self) -> list[dict]:
        return self.foreign_keys

    def list_check_constraints(self) -> list[dict]:
        return self.check_constraints

    def list_triggers(self) -> list[dict]:
        return self.triggers

    def list_modules(self, kind: ObjectKind) -> list[dict]:
        self.calls.append(kind.value.lower())
        return self.modules[kind]

    def list_extended_properties(self) -> list[dict]:
        return self.extended_properties

    def list_dependencies(self) -> list[dict]:
        return self.dependencies


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
def sales_catalog() -> FakeCatalog:
    """A small database with tables in two schemas, views and routines."""
    cat = FakeCatalog()

    cat.add_table("archive", "Orders", column_row("archive", "Orders", "Id"))
    cat.add_table(
        "dbo",
        "Customers",
        column_row("dbo", "Customers", "Id", identity=("1", "1")),
        column_row(
            "dbo",
            "Customers",
            "Name",
            "nvarchar",
            max_length=200,
            collation="SQL_Latin1_General_CP1_CI_AS",
        ),
        column_row("dbo", "Customers", "Email", "varchar", max_length=255, nullable=True),
    )
    cat.add_key("dbo", "Customers", "PK_Customers", ["Id"])
    cat.add_key("dbo", "Customers", "UQ_Customers_Email", ["Email"], primary=False, clustered=False)
    cat.add_table(
        "dbo",
        "sysdiagrams",
        column_row("dbo", "sysdiagrams", "diagram_id"),
        system=True,
    )
    cat.add_table(
        "sales",
        "Orders",
        column_row("sales", "Orders", "Id", identity=("1", "1")),
        column_row("sales", "Orders", "CustomerId"),
        column_row(
            "sales",
            "Orders",
            "Total",
            "decimal",
            max_length=9,
            precision=18,
            scale=2,
            default=("DF_Orders_Total", "((0))"),
        ),
        column_row("sales", "Orders", "Placed", "datetime2", max_length=7, precision=23, scale=3, nullable=True),
    )
    cat.add_key("sales", "Orders", "PK_Orders", ["Id"])
    cat.add_foreign_key(
        "sales", "Orders", "FK_Orders_Customers", "CustomerId", "dbo", "Customers", "Id",
        on_delete="CASCADE",
    )
    cat.check_constraints.append(
        {
            "schema_name": "sales",
            "table_name": "Orders",
            "constraint_name": "CK_Orders_Total",
            "definition": "([Total]>=(0))",
            "is_disabled": False,
        }
    )
    cat.indexes.extend(
        [
            {
                "schema_name": "sales",
                "table_name": "Orders",
                "index_name": "IX_Orders_CustomerId",
                "is_unique": False,
                "index_type": "NONCLUSTERED",
                "filter_definition": None,
                "column_name": "CustomerId",
                "is_descending_key": False,
                "is_included_column": False,
            },
            {
                "schema_name": "sales",
                "table_name": "Orders",
                "index_name": "IX_Orders_CustomerId",
                "is_unique": False,
                "index_type": "NONCLUSTERED",
                "filter_definition": None,
                "column_name": "Total",
                "is_descending_key": False,
                "is_included_column": True,
            },
        ]
    )
    cat.extended_properties.append(
        {
            "schema_name": "sales",
            "object_name": "Orders",
            "column_name": None,
            "property_name": "MS_Description",
            "property_value": "Customer's orders",
        }
    )

    # vA_Top enumerates before the view it selects from
    cat.add_module(
        ObjectKind.VIEW,
        "dbo",
        "vA_Top",
        "CREATE VIEW dbo.vA_Top AS SELECT TOP 10 * FROM dbo.vB_Base",
        references=(("dbo", "vB_Base"),),
    )
    cat.add_module(
        ObjectKind.VIEW,
        "dbo",
        "vB_Base",
        "CREATE VIEW dbo.vB_Base AS\nSELECT c.Name, o.Total FROM dbo.Customers c JOIN sales.Orders o ON o.CustomerId = c.Id",
        references=(("dbo", "Customers"), ("sales", "Orders")),
    )
    cat.add_module(
        ObjectKind.PROCEDURE,
        "dbo",
        "usp_Orders",
        "CREATE PROCEDURE dbo.usp_Orders AS SELECT * FROM dbo.vB_Base",
        references=((None, "vB_Base"),),
    )
    cat.add_module(
        ObjectKind.FUNCTION,
        "dbo",
        "fn_Total",
        "CREATE FUNCTION dbo.fn_Total() RETURNS int AS BEGIN RETURN 1 END",
    )
    return cat


@pytest.fixture
def cyclic_catalog() -> FakeCatalog:
    """Two tables whose foreign keys reference each other."""
    cat = FakeCatalog()
    cat.add_table(
        "dbo",
        "Dept",
        column_row("dbo", "Dept", "Id"),
        column_row("dbo", "Dept", "HeadId", nullable=True),
    )
    cat.add_key("dbo", "Dept", "PK_Dept", ["Id"])
    cat.add_table(
        "dbo",
        "Emp",
        column_row("dbo", "Emp", "Id"),
        column_row("dbo", "Emp", "DeptId"),
    )
    cat.add_key("dbo", "Emp", "PK_Emp", ["Id"])
    cat.add_foreign_key("dbo", "Dept", "FK_Dept_Head", "HeadId", "dbo", "Emp", "Id")
    cat.add_foreign_key("dbo", "Emp", "FK_Emp_Dept", "DeptId", "dbo", "Dept", "Id")
    return cat
