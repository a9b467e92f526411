"""
PostgreSQL service: databases, roles and backups through the postgres account.

``psql -t`` prints tuples only, ``|``-separated with padding, which is
what the parsers below expect.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from hostctl.core.commands.quoting import is_safe_identifier, shell_quote, sql_string
from hostctl.core.errors import has_error_text, has_marker, succeeded
from hostctl.core.models.result import OperationResult
from hostctl.core.models.state import DatabaseInfo, DatabaseUser
from hostctl.core.services.base import SoftwareService

logger = logging.getLogger(__name__)

SYSTEM_DATABASES = frozenset({"postgres", "template0", "template1"})
BACKUP_TIMEOUT = 120.0
WRITE_TIMEOUT = 15.0


# ── Parsers ─────────────────────────────────────────────────────


def _pipe_rows(text: str) -> list[list[str]]:
    rows = []
    for line in text.splitlines():
        parts = [p.strip() for p in line.split("|")]
        if parts and parts[0]:
            rows.append(parts)
    return rows


def parse_database_names(text: str) -> list[str]:
    return [
        row[0] for row in _pipe_rows(text)
        if row[0] not in SYSTEM_DATABASES and is_safe_identifier(row[0])
    ]


def parse_database_rows(text: str) -> list[DatabaseInfo]:
    """``datname | pg_size_pretty`` rows."""
    return [
        DatabaseInfo(name=row[0], size=row[1])
        for row in _pipe_rows(text) if len(row) >= 2
    ]


def parse_user_rows(text: str) -> list[DatabaseUser]:
    """``usename | usesuper | usecreatedb`` rows; ``t`` flags become privileges."""
    users: list[DatabaseUser] = []
    for row in _pipe_rows(text):
        if len(row) < 3:
            continue
        privileges = []
        if row[1] == "t":
            privileges.append("SUPERUSER")
        if row[2] == "t":
            privileges.append("CREATEDB")
        users.append(DatabaseUser(
            id=row[0],
            username=row[0],
            host="local",
            privileges=", ".join(privileges),
        ))
    return users


def parse_cluster_versions(text: str) -> list[str]:
    """First column of ``pg_lsclusters`` (header already stripped), unique and sorted."""
    versions = {line.split()[0] for line in text.splitlines() if line.strip()}
    return sorted(versions)


# ── Service ─────────────────────────────────────────────────────


def _psql(sql: str, tuples_only: bool = False) -> str:
    flags = "-t -c" if tuples_only else "-c"
    return f"sudo -u postgres psql {flags} {shell_quote(sql)}"


class PostgreSQLService(SoftwareService):

    async def fetch_databases(self) -> list[str]:
        result = await self.run(
            f"{_psql('SELECT datname FROM pg_database WHERE datistemplate = false;', True)} 2>/dev/null",
            WRITE_TIMEOUT,
        )
        if not result.stripped or has_error_text(result.output):
            return []
        return parse_database_names(result.output)

    async def database_rows(self) -> list[DatabaseInfo]:
        sql = (
            "SELECT datname, pg_size_pretty(pg_database_size(datname)) as size "
            "FROM pg_database WHERE datistemplate = false;"
        )
        result = await self.run(f"{_psql(sql, True)} 2>/dev/null")
        if not succeeded(result):
            return []
        return parse_database_rows(result.output)

    async def create_database(
        self,
        name: str,
        username: str | None = None,
        password: str | None = None,
    ) -> OperationResult:
        if not is_safe_identifier(name):
            return OperationResult.failure(f"Invalid database name: {name}")

        result = await self.run(f"sudo -u postgres createdb {name} 2>&1 && echo 'CREATED'", WRITE_TIMEOUT)
        if not has_marker(result.output, "CREATED", "already exists"):
            return OperationResult.failure(f"Failed to create database {name}", output=result.stripped)

        if username and password:
            created = await self.create_user(username, password)
            if not created.ok:
                return created
            granted = await self.grant_privileges(name, username)
            if not granted.ok:
                return granted
        return OperationResult.success(f"Database {name} created")

    async def delete_database(self, name: str) -> OperationResult:
        """Terminate open sessions on the database, then ``dropdb``."""
        if not is_safe_identifier(name):
            return OperationResult.failure(f"Invalid database name: {name}")
        terminate = (
            "SELECT pg_terminate_backend(pid) FROM pg_stat_activity "
            f"WHERE datname = {sql_string(name, escape_backslash=False)} AND pid <> pg_backend_pid();"
        )
        await self.run(f"{_psql(terminate)} 2>/dev/null", WRITE_TIMEOUT)
        result = await self.run(f"sudo -u postgres dropdb {name} 2>&1 && echo 'DROPPED'", WRITE_TIMEOUT)
        if has_marker(result.output, "DROPPED"):
            return OperationResult.success(f"Database {name} dropped")
        return OperationResult.failure(f"Failed to drop database {name}", output=result.stripped)

    async def backup_database(self, name: str) -> OperationResult:
        if not is_safe_identifier(name):
            return OperationResult.failure(f"Invalid database name: {name}")
        stamp = datetime.now(UTC).strftime("%Y%m%d_%H%M%S")
        path = f"/tmp/{name}_{stamp}.sql"
        result = await self.run(
            f"sudo -u postgres pg_dump {name} > {shell_quote(path)} 2>/dev/null && echo 'SUCCESS'",
            BACKUP_TIMEOUT,
        )
        if has_marker(result.output, "SUCCESS"):
            return OperationResult.success(f"Backup written to {path}", path=path)
        return OperationResult.failure(f"Backup of {name} failed")

    # ── Roles ───────────────────────────────────────────────────

    async def list_users(self) -> list[str]:
        result = await self.run(f"{_psql('SELECT usename FROM pg_user;', True)} 2>/dev/null", WRITE_TIMEOUT)
        return result.lines()

    async def user_rows(self) -> list[DatabaseUser]:
        result = await self.run(
            f"{_psql('SELECT usename, usesuper, usecreatedb FROM pg_user;', True)} 2>/dev/null"
        )
        if not succeeded(result):
            return []
        return parse_user_rows(result.output)

    async def create_user(self, username: str, password: str) -> OperationResult:
        if not is_safe_identifier(username):
            return OperationResult.failure(f"Invalid user name: {username}")
        sql = f'CREATE USER "{username}" WITH PASSWORD {sql_string(password, escape_backslash=False)};'
        result = await self.run(f"{_psql(sql)} 2>&1 && echo 'CREATED'", WRITE_TIMEOUT)
        if has_marker(result.output, "CREATED", "already exists"):
            return OperationResult.success(f"User {username} created")
        return OperationResult.failure(f"Failed to create user {username}", output=result.stripped)

    async def delete_user(self, username: str) -> OperationResult:
        if not is_safe_identifier(username):
            return OperationResult.failure(f"Invalid user name: {username}")
        sql = f'DROP USER IF EXISTS "{username}";'
        result = await self.run(f"{_psql(sql)} 2>&1 && echo 'DROPPED'", WRITE_TIMEOUT)
        if has_marker(result.output, "DROPPED"):
            return OperationResult.success(f"User {username} dropped")
        return OperationResult.failure(f"Failed to drop user {username}", output=result.stripped)

    async def grant_privileges(self, database: str, username: str) -> OperationResult:
        if not (is_safe_identifier(database) and is_safe_identifier(username)):
            return OperationResult.failure("Invalid database or user name")
        sql = f'GRANT ALL PRIVILEGES ON DATABASE "{database}" TO "{username}";'
        result = await self.run(f"{_psql(sql)} 2>&1 && echo 'GRANTED'", WRITE_TIMEOUT)
        if has_marker(result.output, "GRANTED"):
            return OperationResult.success(f"Granted {database} to {username}")
        return OperationResult.failure(f"Failed to grant privileges on {database}", output=result.stripped)

    # ── Status ──────────────────────────────────────────────────

    async def connection_count(self) -> int:
        result = await self.run(f"{_psql('SELECT count(*) FROM pg_stat_activity;', True)} 2>/dev/null")
        try:
            return int(result.stripped)
        except ValueError:
            return 0

    async def cluster_versions(self) -> list[str]:
        result = await self.run("pg_lsclusters 2>/dev/null | tail -n +2")
        return parse_cluster_versions(result.output)
