"""Application context management for the CLI."""

from dataclasses import dataclass

from wdbschema.cli.common.exits import die
from wdbschema.cli.common.output import out
from wdbschema.core.auth import resolve_credentials
from wdbschema.core.connection import ConnectionSettings
from wdbschema.core.ddl import ScriptOptions
from wdbschema.core.selectors import (
    AllObjectsSelector,
    ObjectSelector,
    SingleTableSelector,
)


@dataclass
class ScriptAppContext:
    """Application context holding connection settings, selector and options."""

    settings: ConnectionSettings
    selector: ObjectSelector
    options: ScriptOptions


def build_selector(
    *,
    table: str | None,
    table_schema: str | None,
    functions: bool,
) -> ObjectSelector:
    """
    Build the object selector from user-provided criteria.

    A table name selects that single table (optionally schema-qualified);
    otherwise every table and view is selected, plus routines when
    `functions` is set.
    """
    if table:
        if functions:
            out.warn("--functions is ignored when --table is given.")
        return SingleTableSelector(table, schema=table_schema)
    if table_schema:
        out.warn("--table-schema is ignored without --table.")
    return AllObjectsSelector(include_routines=functions)


def build_script_context(
    *,
    hostname: str,
    port: int | None,
    instance: str | None,
    username: str | None,
    password: str | None,
    windows_auth: bool,
    database: str,
    table: str | None,
    table_schema: str | None,
    functions: bool,
    driver: str,
    timeout: int,
    encrypt: bool,
    trust_server_certificate: bool,
) -> ScriptAppContext:
    """Build and return the application context for the script command.

    Returns:
        ScriptAppContext: Context with connection settings, selector and options.
    """
    if not windows_auth and not username:
        die("A username is required unless --windows-auth is used.", code=1)
    if instance and port:
        out.warn(f"Both instance and port given; connecting to instance '{instance}'.")

    credentials = resolve_credentials(
        windows_auth=windows_auth, username=username, password=password
    )
    settings = ConnectionSettings(
        host=hostname,
        database=database,
        credentials=credentials,
        port=port,
        instance=instance or None,
        driver=driver,
        timeout=timeout,
        encrypt=encrypt,
        trust_server_certificate=trust_server_certificate,
    )
    selector = build_selector(table=table, table_schema=table_schema, functions=functions)
    return ScriptAppContext(settings=settings, selector=selector, options=ScriptOptions())
