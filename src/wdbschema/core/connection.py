"""Connection management for SQL Server.

Builds the ODBC connection string for the `mssql+pyodbc` SQLAlchemy dialect,
opens a single session for the run and guarantees it is released on every
exit path. Driver errors are translated into `ServerConnectionError`.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterator
from urllib.parse import quote_plus

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from wdbschema.core.auth import AuthMode, Credentials, format_connection_error
from wdbschema.core.errors import ServerConnectionError

logger = logging.getLogger(__name__)

DEFAULT_ODBC_DRIVER = "ODBC Driver 18 for SQL Server"
DEFAULT_TIMEOUT = 30


@dataclass(frozen=True)
class ConnectionSettings:
    """Everything needed to open a session to one database."""

    host: str
    database: str
    credentials: Credentials
    port: int | None = None
    instance: str | None = None
    driver: str = DEFAULT_ODBC_DRIVER
    timeout: int = DEFAULT_TIMEOUT
    encrypt: bool = True
    trust_server_certificate: bool = True

    @property
    def server(self) -> str:
        """
        Server address in ODBC form.

        An instance name takes precedence over a port (`host\\instance`);
        otherwise `host,port`, or just `host` for the default port.
        """
        if self.instance:
            return f"{self.host}\\{self.instance}"
        if self.port:
            return f"{self.host},{self.port}"
        return self.host


def _odbc_value(value: str) -> str:
    """Brace-quote an ODBC attribute value when it contains special characters."""
    if any(ch in value for ch in ";{}=") or value != value.strip():
        return "{" + value.replace("}", "}}") + "}"
    return value


def build_odbc_connection_string(settings: ConnectionSettings) -> str:
    """Return the raw ODBC connection string for the settings."""
    parts = [
        f"DRIVER={{{settings.driver}}}",
        f"SERVER={_odbc_value(settings.server)}",
        f"DATABASE={_odbc_value(settings.database)}",
    ]
    if settings.credentials.mode is AuthMode.TRUSTED:
        parts.append("Trusted_Connection=yes")
    else:
        parts.append(f"UID={_odbc_value(settings.credentials.username)}")
        parts.append(f"PWD={_odbc_value(settings.credentials.password)}")
    parts.append(f"Encrypt={'yes' if settings.encrypt else 'no'}")
    parts.append(
        f"TrustServerCertificate={'yes' if settings.trust_server_certificate else 'no'}"
    )
    return ";".join(parts)


def build_engine_url(settings: ConnectionSettings) -> str:
    """Return a SQLAlchemy URL wrapping the ODBC connection string."""
    return f"mssql+pyodbc:///?odbc_connect={quote_plus(build_odbc_connection_string(settings))}"


def create_sqlserver_engine(settings: ConnectionSettings) -> Engine:
    """Create an engine with login and query timeouts applied."""
    engine = create_engine(
        build_engine_url(settings),
        connect_args={"timeout": settings.timeout},
    )

    @event.listens_for(engine, "connect")
    def _set_query_timeout(dbapi_connection, _record) -> None:
        # pyodbc applies this to every statement on the connection
        dbapi_connection.timeout = settings.timeout

    return engine


class ServerConnection:
    """An open, read-only session to one database."""

    def __init__(self, settings: ConnectionSettings, connection: Connection) -> None:
        self.settings = settings
        self._connection: Connection | None = connection

    @property
    def host(self) -> str:
        return self.settings.host

    @property
    def port(self) -> int | None:
        return self.settings.port

    @property
    def instance(self) -> str | None:
        return self.settings.instance

    @property
    def auth_mode(self) -> AuthMode:
        return self.settings.credentials.mode

    @property
    def database(self) -> str:
        return self.settings.database

    @property
    def is_open(self) -> bool:
        return self._connection is not None

    def query(self, sql: str, **params: Any) -> list[dict[str, Any]]:
        """Run a catalog query and return its rows as dictionaries."""
        if self._connection is None:
            raise ServerConnectionError("Connection is closed.")
        try:
            result = self._connection.execute(text(sql), params)
            return [dict(row) for row in result.mappings()]
        except DBAPIError as exc:
            raise ServerConnectionError(
                format_connection_error(
                    str(exc.orig), server=self.settings.server, database=self.database
                )
            ) from exc

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None


@contextmanager
def open_connection(
    settings: ConnectionSettings,
    *,
    engine_factory: Callable[[ConnectionSettings], Engine] = create_sqlserver_engine,
) -> Iterator[ServerConnection]:
    """
    Open a session for the duration of the `with` block.

    Raises:
        ServerConnectionError: If login fails, the host is unreachable, the
            database does not exist or the login timeout expires.
    """
    logger.info(
        "Connecting to %s (database %s, %s auth)",
        settings.server,
        settings.database,
        settings.credentials.mode.value,
    )
    engine = engine_factory(settings)
    try:
        try:
            raw = engine.connect()
        except DBAPIError as exc:
            raise ServerConnectionError(
                format_connection_error(
                    str(exc.orig), server=settings.server, database=settings.database
                )
            ) from exc
        except SQLAlchemyError as exc:
            raise ServerConnectionError(
                format_connection_error(
                    str(exc), server=settings.server, database=settings.database
                )
            ) from exc

        conn = ServerConnection(settings, raw)
        try:
            yield conn
        finally:
            conn.close()
            logger.debug("Connection to %s closed", settings.server)
    finally:
        engine.dispose()
