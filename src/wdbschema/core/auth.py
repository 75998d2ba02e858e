"""Authentication helpers for SQL Server.

This module resolves the credentials used to log in (trusted connection or
SQL login) and applies the password fallback rule: an explicit password wins,
then the `WDBSCHEMAPASSWORD` environment variable, then the empty string.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping

PASSWORD_ENV_VAR = "WDBSCHEMAPASSWORD"


class AuthMode(str, Enum):
    """Credential mode for the server session."""

    TRUSTED = "trusted"
    BASIC = "basic"


@dataclass(frozen=True)
class Credentials:
    """Login credentials. `password` is excluded from repr."""

    mode: AuthMode
    username: str = ""
    password: str = field(default="", repr=False)

    @classmethod
    def trusted(cls) -> Credentials:
        return cls(mode=AuthMode.TRUSTED)

    @classmethod
    def basic(cls, username: str, password: str) -> Credentials:
        return cls(mode=AuthMode.BASIC, username=username, password=password)


def resolve_password(
    password: str | None,
    env: Mapping[str, str] | None = None,
) -> str:
    """Return the explicit password, else the env variable, else ''."""
    if password:
        return password
    environ = os.environ if env is None else env
    return environ.get(PASSWORD_ENV_VAR) or ""


def resolve_credentials(
    *,
    windows_auth: bool,
    username: str | None,
    password: str | None,
    env: Mapping[str, str] | None = None,
) -> Credentials:
    """
    Build credentials from CLI-level inputs.

    With `windows_auth` the username and password are ignored and a trusted
    connection is used.
    """
    if windows_auth:
        return Credentials.trusted()
    return Credentials.basic(username or "", resolve_password(password, env))


_LOGIN_FAILED = re.compile(r"Login failed for user '([^']*)'", re.IGNORECASE)
_CANNOT_OPEN_DB = re.compile(r'Cannot open database "([^"]*)"', re.IGNORECASE)


def format_connection_error(message: str, *, server: str, database: str) -> str:
    """Return a user-friendly message for a driver-level connection failure."""
    # driver messages are long and bracket-prefixed; keep only the essentials
    db_match = _CANNOT_OPEN_DB.search(message)
    if db_match:
        return f"Database '{db_match.group(1)}' not found or not accessible on {server}."
    login_match = _LOGIN_FAILED.search(message)
    if login_match:
        return f"Login failed for user '{login_match.group(1)}' on {server}."
    if "timeout" in message.lower() or "HYT00" in message:
        return f"Timed out connecting to {server} (database '{database}')."
    return f"Cannot connect to {server} (database '{database}'): {message}"
