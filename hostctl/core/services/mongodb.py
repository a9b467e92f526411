"""MongoDB service: databases and users through ``mongosh --eval``."""

from __future__ import annotations

import logging

from hostctl.core.commands.quoting import is_safe_identifier, shell_quote
from hostctl.core.errors import has_marker
from hostctl.core.models.result import OperationResult
from hostctl.core.models.state import DatabaseInfo, DatabaseUser
from hostctl.core.services.base import SoftwareService
from hostctl.core.services.formatting import format_bytes

logger = logging.getLogger(__name__)

WRITE_TIMEOUT = 15.0
BACKUP_TIMEOUT = 300.0


def _eval(script: str, database: str = "admin") -> str:
    return f"mongosh {database} --quiet --eval {shell_quote(script)} 2>/dev/null"


def parse_database_rows(text: str) -> list[DatabaseInfo]:
    """``name<TAB>sizeOnDisk`` lines."""
    rows: list[DatabaseInfo] = []
    for line in text.splitlines():
        parts = [p.strip() for p in line.split("\t")]
        if len(parts) < 2 or not parts[0]:
            continue
        try:
            size = int(float(parts[1]))
        except ValueError:
            size = 0
        rows.append(DatabaseInfo(name=parts[0], size=format_bytes(size)))
    return rows


def parse_user_rows(text: str) -> list[DatabaseUser]:
    """``user<TAB>roles`` lines."""
    users: list[DatabaseUser] = []
    for line in text.splitlines():
        parts = [p.strip() for p in line.split("\t")]
        if not parts[0]:
            continue
        users.append(DatabaseUser(
            id=parts[0],
            username=parts[0],
            privileges=parts[1] if len(parts) > 1 else "",
        ))
    return users


class MongoDBService(SoftwareService):

    async def database_rows(self) -> list[DatabaseInfo]:
        result = await self.run(_eval(
            'db.adminCommand("listDatabases").databases'
            '.forEach(d => print(d.name + "\\t" + d.sizeOnDisk))'
        ))
        return sorted(parse_database_rows(result.output), key=lambda r: r.name)

    async def fetch_databases(self) -> list[str]:
        return [row.name for row in await self.database_rows()]

    async def create_database(
        self,
        name: str,
        username: str | None = None,
        password: str | None = None,
    ) -> OperationResult:
        """MongoDB creates a database on first write; seed an ``init`` collection."""
        if not is_safe_identifier(name):
            return OperationResult.failure(f"Invalid database name: {name}")
        result = await self.run(_eval('db.createCollection("init")', name), WRITE_TIMEOUT)
        if not has_marker(result.output, "ok", "1"):
            return OperationResult.failure(f"Failed to create database {name}", output=result.stripped)
        if username and password:
            return await self.create_user(username, password, database=name)
        return OperationResult.success(f"Database {name} created")

    async def delete_database(self, name: str) -> OperationResult:
        if not is_safe_identifier(name):
            return OperationResult.failure(f"Invalid database name: {name}")
        result = await self.run(_eval("db.dropDatabase()", name), WRITE_TIMEOUT)
        if has_marker(result.output, "ok"):
            return OperationResult.success(f"Database {name} dropped")
        return OperationResult.failure(f"Failed to drop database {name}", output=result.stripped)

    async def backup_database(self, name: str) -> OperationResult:
        if not is_safe_identifier(name):
            return OperationResult.failure(f"Invalid database name: {name}")
        path = f"/tmp/{name}.archive.gz"
        result = await self.run(
            f"mongodump --db {name} --archive={shell_quote(path)} --gzip 2>/dev/null && echo 'SUCCESS'",
            BACKUP_TIMEOUT,
        )
        if has_marker(result.output, "SUCCESS"):
            return OperationResult.success(f"Backup written to {path}", path=path)
        return OperationResult.failure(f"Backup of {name} failed")

    # ── Users ───────────────────────────────────────────────────

    async def user_rows(self, database: str = "admin") -> list[DatabaseUser]:
        result = await self.run(_eval(
            'db.getUsers().users.forEach(u => print(u.user + "\\t" + '
            'u.roles.map(r => r.role).join(",")))',
            database,
        ))
        return parse_user_rows(result.output)

    async def list_users(self, database: str = "admin") -> list[str]:
        return [user.username for user in await self.user_rows(database)]

    async def create_user(self, username: str, password: str, database: str = "admin") -> OperationResult:
        if not (is_safe_identifier(username) and is_safe_identifier(database)):
            return OperationResult.failure("Invalid user or database name")
        escaped = password.replace("\\", "\\\\").replace('"', '\\"')
        script = (
            f'db.createUser({{user: "{username}", pwd: "{escaped}", '
            f'roles: [{{role: "readWrite", db: "{database}"}}]}})'
        )
        result = await self.run(_eval(script, database), WRITE_TIMEOUT)
        if has_marker(result.output, "ok", "already exists"):
            return OperationResult.success(f"User {username} created")
        return OperationResult.failure(f"Failed to create user {username}", output=result.stripped)

    async def delete_user(self, username: str, database: str = "admin") -> OperationResult:
        if not (is_safe_identifier(username) and is_safe_identifier(database)):
            return OperationResult.failure("Invalid user or database name")
        result = await self.run(_eval(f'db.dropUser("{username}")', database), WRITE_TIMEOUT)
        if has_marker(result.output, "true"):
            return OperationResult.success(f"User {username} dropped")
        return OperationResult.failure(f"Failed to drop user {username}", output=result.stripped)
