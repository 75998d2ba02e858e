"""Common CLI options for the CLI."""

import typer

from wdbschema.core.auth import PASSWORD_ENV_VAR
from wdbschema.core.connection import DEFAULT_ODBC_DRIVER, DEFAULT_TIMEOUT

HostnameOpt = typer.Option(
    ...,
    "--hostname",
    "-s",
    help="Specifies the hostname of the DB to which to connect.",
)

PortOpt = typer.Option(
    None,
    "--port",
    "-p",
    min=1,
    max=65535,
    help="Specifies the TCP port of the DB to which to connect.",
)

InstanceOpt = typer.Option(
    None,
    "--instance",
    "-n",
    help="Specifies the instance name of SQL Server to which to connect.",
)

UsernameOpt = typer.Option(
    None,
    "--username",
    "-u",
    help="Specifies the login name used to connect to DB.",
)

PasswordOpt = typer.Option(
    None,
    "--password",
    "-x",
    help=(
        "Specifies the password for the login ID. If this option isn't used, "
        f"the password is read from {PASSWORD_ENV_VAR} environment variable."
    ),
    show_default=False,
)

WindowsAuthOpt = typer.Option(
    False,
    "--windows-auth",
    "--windows_auth",
    "-w",
    help="Connect with a trusted connection using integrated security.",
)

DatabaseOpt = typer.Option(
    ...,
    "--database",
    "-d",
    help="Specifies the database to connect to.",
)

TableOpt = typer.Option(
    None,
    "--table",
    "-t",
    help="Export the schema only for this table.",
)

TableSchemaOpt = typer.Option(
    None,
    "--table-schema",
    "--table_schema",
    "-h",
    help="Schema of the table given with --table.",
)

FunctionsOpt = typer.Option(
    False,
    "--functions",
    "-f",
    help="Include stored procedures and functions in the exported schema.",
)

DriverOpt = typer.Option(
    DEFAULT_ODBC_DRIVER,
    "--driver",
    envvar="WDBSCHEMA_ODBC_DRIVER",
    help="ODBC driver name used to connect.",
)

TimeoutOpt = typer.Option(
    DEFAULT_TIMEOUT,
    "--timeout",
    min=1,
    help="Login and catalog query timeout in seconds.",
)

EncryptOpt = typer.Option(
    True,
    "--encrypt/--no-encrypt",
    help="Encrypt the connection.",
)

TrustCertOpt = typer.Option(
    True,
    "--trust-server-certificate/--no-trust-server-certificate",
    help="Accept the server certificate without validation.",
)

ListOpt = typer.Option(
    False,
    "--list",
    help="Show which objects would be scripted, in order, but don't script them",
)

VerboseOpt = typer.Option(
    False,
    "--verbose",
    "-v",
    help="Log progress and catalog queries to stderr.",
)
