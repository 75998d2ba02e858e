"""Command that prints a schema script for a SQL Server database."""

import logging

import typer

from wdbschema.cli.common.context import ScriptAppContext, build_script_context
from wdbschema.cli.common.exits import exit_from_exc
from wdbschema.cli.common.log import setup_logging
from wdbschema.cli.common.options import (
    DatabaseOpt,
    DriverOpt,
    EncryptOpt,
    FunctionsOpt,
    HostnameOpt,
    InstanceOpt,
    ListOpt,
    PasswordOpt,
    PortOpt,
    TableOpt,
    TableSchemaOpt,
    TimeoutOpt,
    TrustCertOpt,
    UsernameOpt,
    VerboseOpt,
    WindowsAuthOpt,
)
from wdbschema.cli.common.output import out
from wdbschema.core.adapters.sqlserver import SqlServerCatalogAdapter
from wdbschema.core.connection import open_connection
from wdbschema.core.emission import write_script
from wdbschema.core.errors import SchemaScriptError
from wdbschema.core.scripter import plan_database, script_database

logger = logging.getLogger(__name__)


def _run(appctx: ScriptAppContext, *, list_only: bool) -> None:
    with open_connection(appctx.settings) as conn:
        adapter = SqlServerCatalogAdapter(conn)
        with out.status(f"Loading catalog of {appctx.settings.database}..."):
            if list_only:
                _, ordered = plan_database(adapter, appctx.selector, appctx.options)
            else:
                # a failure late in the order must not leave a partial script on stdout
                batches = list(script_database(adapter, appctx.selector, appctx.options))

    if list_only:
        out.objects_table(ordered, title="Objects in script order")
        return

    written = write_script(batches)
    logger.info("Wrote %d batch(es)", written)


def script(
    hostname: str = HostnameOpt,
    port: int | None = PortOpt,
    instance: str | None = InstanceOpt,
    username: str | None = UsernameOpt,
    password: str | None = PasswordOpt,
    windows_auth: bool = WindowsAuthOpt,
    database: str = DatabaseOpt,
    table: str | None = TableOpt,
    table_schema: str | None = TableSchemaOpt,
    functions: bool = FunctionsOpt,
    driver: str = DriverOpt,
    timeout: int = TimeoutOpt,
    encrypt: bool = EncryptOpt,
    trust_server_certificate: bool = TrustCertOpt,
    list_only: bool = ListOpt,
    verbose: bool = VerboseOpt,
):
    """
    Print a schema-only SQL script for a database's tables and views
    (and optionally stored procedures and functions) to stdout.
    """
    setup_logging(verbose)

    appctx = build_script_context(
        hostname=hostname,
        port=port,
        instance=instance,
        username=username,
        password=password,
        windows_auth=windows_auth,
        database=database,
        table=table,
        table_schema=table_schema,
        functions=functions,
        driver=driver,
        timeout=timeout,
        encrypt=encrypt,
        trust_server_certificate=trust_server_certificate,
    )

    try:
        _run(appctx, list_only=list_only)
    except SchemaScriptError as exc:
        exit_from_exc(exc, code=1)
    except Exception as exc:  # noqa: BLE001  single top-level report, exit 1
        logger.debug("Unhandled error", exc_info=True)
        exit_from_exc(exc, code=1)
