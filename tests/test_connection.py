from urllib.parse import unquote_plus

import pytest
from sqlalchemy.exc import OperationalError

from wdbschema.core.auth import AuthMode, Credentials
from wdbschema.core.connection import (
    ConnectionSettings,
    build_engine_url,
    build_odbc_connection_string,
    open_connection,
)
from wdbschema.core.errors import ServerConnectionError


def _settings(**overrides) -> ConnectionSettings:
    values = dict(
        host="dbhost",
        database="Sales",
        credentials=Credentials.basic("sa", "pw"),
    )
    values.update(overrides)
    return ConnectionSettings(**values)


@pytest.mark.parametrize(
    ("port", "instance", "expected"),
    [
        (None, None, "dbhost"),
        (1433, None, "dbhost,1433"),
        (None, "SQLEXPRESS", "dbhost\\SQLEXPRESS"),
        (1433, "SQLEXPRESS", "dbhost\\SQLEXPRESS"),
    ],
)
def test_server_address_modes(port, instance, expected):
    assert _settings(port=port, instance=instance).server == expected


def test_odbc_connection_string_with_sql_login():
    conn_str = build_odbc_connection_string(_settings(port=1433))

    assert conn_str.split(";") == [
        "DRIVER={ODBC Driver 18 for SQL Server}",
        "SERVER=dbhost,1433",
        "DATABASE=Sales",
        "UID=sa",
        "PWD=pw",
        "Encrypt=yes",
        "TrustServerCertificate=yes",
    ]


def test_odbc_connection_string_trusted_and_quoted_password():
    trusted = build_odbc_connection_string(_settings(credentials=Credentials.trusted()))
    quoted = build_odbc_connection_string(_settings(credentials=Credentials.basic("sa", "a;b}c")))

    assert "Trusted_Connection=yes" in trusted
    assert "UID=" not in trusted
    assert "PWD={a;b}}c}" in quoted


def test_engine_url_wraps_odbc_string():
    url = build_engine_url(_settings(encrypt=False))

    assert url.startswith("mssql+pyodbc:///?odbc_connect=")
    assert "Encrypt=no" in unquote_plus(url)


class _Result:
    def __init__(self, rows):
        self._rows = rows

    def mappings(self):
        return self._rows


class _Conn:
    def __init__(self, rows=()):
        self.rows = list(rows)
        self.closed = False
        self.statements: list[str] = []

    def execute(self, statement, params):
        self.statements.append(str(statement))
        return _Result(self.rows)

    def close(self):
        self.closed = True


class _Engine:
    def __init__(self, conn=None, error=None):
        self.conn = conn
        self.error = error
        self.disposed = False

    def connect(self):
        if self.error is not None:
            raise self.error
        return self.conn

    def dispose(self):
        self.disposed = True


def test_open_connection_queries_and_closes():
    raw = _Conn(rows=[{"name": "Sales"}])
    engine = _Engine(conn=raw)

    with open_connection(_settings(port=1433), engine_factory=lambda s: engine) as conn:
        assert conn.is_open
        assert (conn.host, conn.port, conn.instance) == ("dbhost", 1433, None)
        assert conn.auth_mode is AuthMode.BASIC
        assert conn.database == "Sales"
        assert conn.query("SELECT DB_NAME() AS name") == [{"name": "Sales"}]

    assert raw.closed is True
    assert engine.disposed is True
    assert conn.is_open is False
    with pytest.raises(ServerConnectionError, match="closed"):
        conn.query("SELECT 1")


def test_open_connection_releases_session_on_downstream_error():
    raw = _Conn()
    engine = _Engine(conn=raw)

    with pytest.raises(RuntimeError, match="boom"):
        with open_connection(_settings(), engine_factory=lambda s: engine):
            raise RuntimeError("boom")

    assert raw.closed is True
    assert engine.disposed is True


def test_open_connection_maps_login_failure():
    error = OperationalError(
        "connect", {}, Exception("[28000] Login failed for user 'sa'. (18456)")
    )
    engine = _Engine(error=error)

    with pytest.raises(ServerConnectionError, match="Login failed for user 'sa'"):
        with open_connection(_settings(), engine_factory=lambda s: engine):
            pass

    assert engine.disposed is True


def test_query_failure_surfaces_as_connection_error():
    class _FailingConn(_Conn):
        def execute(self, statement, params):
            raise OperationalError("SELECT", {}, Exception("[HYT00] Query timeout expired"))

    engine = _Engine(conn=_FailingConn())

    with open_connection(_settings(), engine_factory=lambda s: engine) as conn:
        with pytest.raises(ServerConnectionError, match="Timed out"):
            conn.query("SELECT * FROM sys.tables")
