import sys
from contextlib import contextmanager

import pytest
from typer.testing import CliRunner

from wdbschema.cli.cli import app, main
from wdbschema.cli.commands import script as script_cmd
from wdbschema.core.auth import AuthMode
from wdbschema.core.errors import ServerConnectionError
from wdbschema.core.models import ObjectKind

runner = CliRunner()

BASE_ARGS = ["-s", "dbhost", "-d", "Sales", "-u", "sa"]


@pytest.fixture
def connected(monkeypatch, sales_catalog):
    """Route the command to the in-memory catalog; record the settings used."""
    seen = {}

    @contextmanager
    def fake_open_connection(settings):
        seen["settings"] = settings
        yield object()

    monkeypatch.setattr(script_cmd, "open_connection", fake_open_connection)
    monkeypatch.setattr(script_cmd, "SqlServerCatalogAdapter", lambda conn: sales_catalog)
    return seen


def test_scripts_all_tables_then_views(connected):
    result = runner.invoke(app, BASE_ARGS + ["-x", "pw"])

    assert result.exit_code == 0, result.output
    out = result.output
    assert out.count("CREATE TABLE") == 3
    assert "[dbo].[sysdiagrams]" not in out
    assert "CREATE PROCEDURE" not in out
    assert "CREATE FUNCTION" not in out
    assert "SET ANSI_NULLS ON" not in out
    assert out.rindex("CREATE TABLE") < out.index("CREATE VIEW dbo.vB_Base")
    assert out.index("CREATE VIEW dbo.vB_Base") < out.index("CREATE VIEW dbo.vA_Top")
    assert " CONSTRAINT [CK_Orders_Total] CHECK ([Total]>=(0))\n)\nGO\n\n" in out
    fk = out.index("ALTER TABLE [sales].[Orders] WITH CHECK ADD CONSTRAINT [FK_Orders_Customers]")
    assert out.index("CREATE TABLE [sales].[Orders](") < fk < out.index("CREATE VIEW")


def test_functions_flag_adds_routines_after_views(connected):
    result = runner.invoke(app, BASE_ARGS + ["-f"])

    assert result.exit_code == 0, result.output
    assert result.output.index("CREATE VIEW dbo.vA_Top") < result.output.index(
        "CREATE PROCEDURE dbo.usp_Orders"
    )
    assert "CREATE FUNCTION dbo.fn_Total()" in result.output


def test_single_table_with_schema(connected):
    result = runner.invoke(app, BASE_ARGS + ["-t", "Orders", "-h", "sales"])

    assert result.exit_code == 0, result.output
    assert result.output.count("CREATE TABLE") == 1
    assert "CREATE TABLE [sales].[Orders](" in result.output
    assert "CREATE VIEW" not in result.output


def test_missing_table_reports_error(connected):
    result = runner.invoke(app, BASE_ARGS + ["-t", "Missing"])

    assert result.exit_code == 1
    assert "ERROR: Table 'Missing' not found. No DB objects are selected for export." in result.output
    assert "CREATE" not in result.output


def test_password_falls_back_to_environment(connected, monkeypatch):
    monkeypatch.setenv("WDBSCHEMAPASSWORD", "from-env")

    result = runner.invoke(app, BASE_ARGS)

    assert result.exit_code == 0, result.output
    assert connected["settings"].credentials.password == "from-env"


def test_explicit_password_wins(connected, monkeypatch):
    monkeypatch.setenv("WDBSCHEMAPASSWORD", "from-env")

    result = runner.invoke(app, BASE_ARGS + ["-x", "explicit"])

    assert result.exit_code == 0, result.output
    assert connected["settings"].credentials.password == "explicit"


def test_windows_auth_and_instance(connected):
    result = runner.invoke(app, ["-s", "dbhost", "-n", "SQLEXPRESS", "-d", "Sales", "-w"])

    assert result.exit_code == 0, result.output
    settings = connected["settings"]
    assert settings.credentials.mode is AuthMode.TRUSTED
    assert settings.server == "dbhost\\SQLEXPRESS"


def test_username_is_required_without_windows_auth(connected):
    result = runner.invoke(app, ["-s", "dbhost", "-d", "Sales"])

    assert result.exit_code == 1
    assert "ERROR: A username is required" in result.output
    assert "settings" not in connected


def test_list_shows_objects_in_script_order(connected):
    result = runner.invoke(app, BASE_ARGS + ["--list"])

    assert result.exit_code == 0, result.output
    assert "CREATE" not in result.output
    assert result.output.index("vB_Base") < result.output.index("vA_Top")


def test_connection_failure_exits_with_error(monkeypatch):
    @contextmanager
    def failing_open_connection(settings):
        raise ServerConnectionError("Login failed for user 'sa' on dbhost.")
        yield

    monkeypatch.setattr(script_cmd, "open_connection", failing_open_connection)

    result = runner.invoke(app, BASE_ARGS)

    assert result.exit_code == 1
    assert "ERROR: Login failed for user 'sa' on dbhost." in result.output


def test_tables_referencing_each_other_are_scripted(monkeypatch, cyclic_catalog):
    @contextmanager
    def fake_open_connection(settings):
        yield object()

    monkeypatch.setattr(script_cmd, "open_connection", fake_open_connection)
    monkeypatch.setattr(script_cmd, "SqlServerCatalogAdapter", lambda conn: cyclic_catalog)

    result = runner.invoke(app, BASE_ARGS)

    assert result.exit_code == 0, result.output
    last_create = result.output.rindex("CREATE TABLE")
    assert last_create < result.output.index("[FK_Dept_Head]")
    assert last_create < result.output.index("[FK_Emp_Dept]")


def test_generation_failure_prints_no_partial_script(connected, sales_catalog):
    sales_catalog.modules[ObjectKind.VIEW][0]["definition"] = None

    result = runner.invoke(app, BASE_ARGS)

    assert result.exit_code == 1
    assert "ERROR: Definition of view [dbo].[vA_Top] is not available" in result.output
    assert "CREATE TABLE" not in result.output


def test_main_reports_usage_errors_with_exit_code_1(monkeypatch, capsys):
    monkeypatch.setattr(sys, "argv", ["wdbschema", "-d", "Sales"])

    with pytest.raises(SystemExit) as excinfo:
        main()

    assert excinfo.value.code == 1
    err = capsys.readouterr().err
    assert err.startswith("ERROR: Missing option '--hostname'")
    assert len(err.strip().splitlines()) == 1


def test_main_reports_unknown_options(monkeypatch, capsys):
    monkeypatch.setattr(sys, "argv", ["wdbschema", "-s", "dbhost", "-d", "Sales", "--bogus"])

    with pytest.raises(SystemExit) as excinfo:
        main()

    assert excinfo.value.code == 1
    assert "ERROR: No such option: --bogus" in capsys.readouterr().err


def test_main_propagates_command_exit_code(monkeypatch, capsys):
    monkeypatch.setattr(sys, "argv", ["wdbschema", "-s", "dbhost", "-d", "Sales"])

    with pytest.raises(SystemExit) as excinfo:
        main()

    assert excinfo.value.code == 1
    assert "ERROR: A username is required" in capsys.readouterr().err


def test_main_succeeds(connected, monkeypatch, capsys):
    monkeypatch.setattr(sys, "argv", ["wdbschema", *BASE_ARGS, "-t", "Customers"])

    main()

    assert "CREATE TABLE [dbo].[Customers](" in capsys.readouterr().out
