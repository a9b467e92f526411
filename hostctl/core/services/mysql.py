"""
MySQL / MariaDB service: databases, users, backups and global status.

Every SQL statement is built from validated identifiers (backticked)
and escaped string literals, then shell-quoted as a whole before it is
handed to ``mysql -e``. Success of a write is confirmed by an
``&& echo 'MARKER'`` suffix rather than by parsing client output.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from hostctl.core.commands.quoting import shell_quote, sql_string
from hostctl.core.errors import has_error_text, has_marker, succeeded
from hostctl.core.models.result import OperationResult
from hostctl.core.models.state import DatabaseInfo, DatabaseUser, MySQLStatus
from hostctl.core.services.base import SoftwareService
from hostctl.core.services.formatting import format_uptime
from hostctl.core.services.versioning import first_version

logger = logging.getLogger(__name__)

SYSTEM_DATABASES = frozenset({
    "information_schema", "performance_schema", "mysql", "sys", "database",
})
BACKUP_TIMEOUT = 120.0
WRITE_TIMEOUT = 15.0

STATUS_QUERY = (
    "SHOW GLOBAL STATUS WHERE Variable_name IN "
    "('Uptime', 'Threads_connected', 'Questions', 'Slow_queries', 'Open_tables', 'Queries');"
)
DATABASE_SIZES_QUERY = (
    "SELECT table_schema AS 'Database', "
    "ROUND(SUM(data_length + index_length) / 1024 / 1024, 2) AS 'Size (MB)', "
    "COUNT(*) AS 'Tables' "
    "FROM information_schema.tables GROUP BY table_schema;"
)


# ── Parsers ─────────────────────────────────────────────────────


def is_valid_database_name(name: str) -> bool:
    """User database names only: 2-63 chars of [A-Za-z0-9_-], not a system schema."""
    name = name.strip()
    if not 1 < len(name) < 64:
        return False
    if name.lower() in SYSTEM_DATABASES or name.lower() == "root":
        return False
    return all(ch.isalnum() or ch in "_-" for ch in name)


def parse_database_names(text: str) -> list[str]:
    """``SHOW DATABASES`` (-NB) output, system schemas removed."""
    return [
        line.strip() for line in text.splitlines()
        if is_valid_database_name(line)
    ]


def parse_database_rows(text: str) -> list[DatabaseInfo]:
    """Tab-separated ``name  size_mb  tables`` rows under a header line."""
    rows: list[DatabaseInfo] = []
    for line in text.splitlines()[1:]:
        parts = [p.strip() for p in line.split("\t")]
        if len(parts) < 3:
            continue
        try:
            tables = int(parts[2])
        except ValueError:
            tables = 0
        rows.append(DatabaseInfo(name=parts[0], size=f"{parts[1]} MB", table_count=tables))
    return rows


def parse_user_rows(text: str) -> list[DatabaseUser]:
    """Tab-separated ``User  Host`` rows under a header line."""
    users: list[DatabaseUser] = []
    for line in text.splitlines()[1:]:
        parts = [p.strip() for p in line.split("\t")]
        if len(parts) < 2 or not parts[0]:
            continue
        users.append(DatabaseUser(
            id=f"{parts[0]}@{parts[1]}",
            username=parts[0],
            host=parts[1],
        ))
    return users


def parse_global_status(text: str) -> dict[str, str]:
    """``SHOW GLOBAL STATUS`` rows → {Variable_name: Value}."""
    values: dict[str, str] = {}
    for line in text.splitlines():
        parts = line.split("\t")
        if len(parts) < 2 or parts[0].strip() == "Variable_name":
            continue
        values[parts[0].strip()] = parts[1].strip()
    return values


def build_status(values: dict[str, str], version: str = "") -> MySQLStatus:
    uptime = values.get("Uptime", "0")
    try:
        qps = f"{int(values.get('Questions', '0')) / max(int(uptime), 1):.1f}"
    except ValueError:
        qps = "0.0"
    return MySQLStatus(
        version=version,
        uptime=format_uptime(uptime),
        threads_connected=values.get("Threads_connected", "0"),
        questions=values.get("Questions", "0"),
        slow_queries=values.get("Slow_queries", "0"),
        open_tables=values.get("Open_tables", "0"),
        qps=qps,
    )


# ── Service ─────────────────────────────────────────────────────


def _mysql(sql: str, flags: str = "-e") -> str:
    return f"sudo mysql {flags} {shell_quote(sql)}"


class MySQLService(SoftwareService):

    async def fetch_databases(self) -> list[str]:
        """User databases; tries plain, sudo, then the Debian maintenance account."""
        result = await self.run(
            "mysql -NBe 'SHOW DATABASES' 2>/dev/null || "
            "sudo mysql -NBe 'SHOW DATABASES' 2>/dev/null || "
            "sudo mysql --defaults-file=/etc/mysql/debian.cnf -NBe 'SHOW DATABASES' 2>/dev/null",
            WRITE_TIMEOUT,
        )
        if not result.stripped or has_error_text(result.output):
            return []
        return parse_database_names(result.output)

    async def database_rows(self) -> list[DatabaseInfo]:
        result = await self.run(f"{_mysql(DATABASE_SIZES_QUERY)} 2>/dev/null")
        if not succeeded(result):
            return []
        return parse_database_rows(result.output)

    async def create_database(
        self,
        name: str,
        username: str | None = None,
        password: str | None = None,
    ) -> OperationResult:
        if not is_valid_database_name(name):
            return OperationResult.failure(f"Invalid database name: {name}")

        sql = f"CREATE DATABASE `{name}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci;"
        result = await self.run(f"{_mysql(sql)} 2>&1 && echo 'CREATED'", WRITE_TIMEOUT)
        if not has_marker(result.output, "CREATED", "exists"):
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
        if not is_valid_database_name(name):
            return OperationResult.failure(f"Invalid database name: {name}")
        result = await self.run(f"{_mysql(f'DROP DATABASE `{name}`;')} 2>&1 && echo 'DROPPED'", WRITE_TIMEOUT)
        if has_marker(result.output, "DROPPED"):
            return OperationResult.success(f"Database {name} dropped")
        return OperationResult.failure(f"Failed to drop database {name}", output=result.stripped)

    async def backup_database(self, name: str) -> OperationResult:
        """``mysqldump`` into ``/tmp/<db>_<timestamp>.sql``."""
        if not is_valid_database_name(name):
            return OperationResult.failure(f"Invalid database name: {name}")
        stamp = datetime.now(UTC).strftime("%Y%m%d_%H%M%S")
        path = f"/tmp/{name}_{stamp}.sql"
        result = await self.run(
            f"sudo mysqldump {name} > {shell_quote(path)} 2>/dev/null && echo 'SUCCESS'",
            BACKUP_TIMEOUT,
        )
        if has_marker(result.output, "SUCCESS"):
            return OperationResult.success(f"Backup written to {path}", path=path)
        return OperationResult.failure(f"Backup of {name} failed")

    # ── Users ───────────────────────────────────────────────────

    async def list_users(self) -> list[str]:
        """``user@host`` strings."""
        sql = "SELECT CONCAT(User, '@', Host) FROM mysql.user;"
        result = await self.run(f"{_mysql(sql, '-NBe')} 2>/dev/null", WRITE_TIMEOUT)
        return result.lines()

    async def user_rows(self) -> list[DatabaseUser]:
        result = await self.run(f"{_mysql('SELECT User, Host FROM mysql.user;')} 2>/dev/null")
        if not succeeded(result):
            return []
        return parse_user_rows(result.output)

    async def create_user(self, username: str, password: str, host: str = "localhost") -> OperationResult:
        sql = f"CREATE USER {sql_string(username)}@{sql_string(host)} IDENTIFIED BY {sql_string(password)};"
        result = await self.run(f"{_mysql(sql)} 2>&1 && echo 'CREATED'", WRITE_TIMEOUT)
        if has_marker(result.output, "CREATED", "exists"):
            return OperationResult.success(f"User {username}@{host} created")
        return OperationResult.failure(f"Failed to create user {username}", output=result.stripped)

    async def grant_privileges(self, database: str, username: str, host: str = "localhost") -> OperationResult:
        if not is_valid_database_name(database):
            return OperationResult.failure(f"Invalid database name: {database}")
        sql = (
            f"GRANT ALL PRIVILEGES ON `{database}`.* TO {sql_string(username)}@{sql_string(host)}; "
            "FLUSH PRIVILEGES;"
        )
        result = await self.run(f"{_mysql(sql)} 2>&1 && echo 'GRANTED'", WRITE_TIMEOUT)
        if has_marker(result.output, "GRANTED"):
            return OperationResult.success(f"Granted {database} to {username}@{host}")
        return OperationResult.failure(f"Failed to grant privileges on {database}", output=result.stripped)

    async def delete_user(self, username: str, host: str = "localhost") -> OperationResult:
        sql = f"DROP USER {sql_string(username)}@{sql_string(host)};"
        result = await self.run(f"{_mysql(sql)} 2>&1 && echo 'DROPPED'", WRITE_TIMEOUT)
        if has_marker(result.output, "DROPPED"):
            return OperationResult.success(f"User {username}@{host} dropped")
        return OperationResult.failure(f"Failed to drop user {username}", output=result.stripped)

    # ── Status ──────────────────────────────────────────────────

    async def fetch_status(self) -> MySQLStatus | None:
        result = await self.run(f"{_mysql(STATUS_QUERY)} 2>/dev/null")
        if not succeeded(result):
            return None
        version = await self.run("mysql -V 2>/dev/null")
        return build_status(
            parse_global_status(result.output),
            first_version(version.output, (r"(\d+\.\d+\.\d+)",)),
        )
