"""
Redis service: keyspace databases, ACL users and runtime CONFIG.

Redis has no named databases; "databases" are the numbered keyspaces
``db0..dbN`` reported by ``INFO keyspace``, and deleting one means
``FLUSHDB`` on that index.
"""

from __future__ import annotations

import logging
import re

from hostctl.core.commands.quoting import is_safe_identifier, shell_quote
from hostctl.core.errors import has_acl_deluser_reply, has_ok_reply
from hostctl.core.models.result import OperationResult
from hostctl.core.models.state import DatabaseInfo
from hostctl.core.services.base import SoftwareService

logger = logging.getLogger(__name__)

KEYSPACE_TIMEOUT = 10.0
WRITE_TIMEOUT = 15.0

_KEYSPACE_RE = re.compile(r"^(db\d+):(.*)$")
_KEYS_RE = re.compile(r"keys=(\d+)")
_DB_NAME_RE = re.compile(r"^db(\d+)$")


# ── Parsers ─────────────────────────────────────────────────────


def parse_keyspace(text: str) -> list[DatabaseInfo]:
    """``db0:keys=5,expires=0,avg_ttl=0`` lines → one row per keyspace."""
    rows: list[DatabaseInfo] = []
    for line in text.splitlines():
        match = _KEYSPACE_RE.match(line.strip())
        if not match:
            continue
        keys = _KEYS_RE.search(match.group(2))
        count = int(keys.group(1)) if keys else 0
        rows.append(DatabaseInfo(name=match.group(1), size=f"{count} keys", table_count=count))
    return rows


def parse_acl_users(text: str) -> list[str]:
    """``ACL LIST`` lines look like ``user <name> on ...``."""
    users = []
    for line in text.splitlines():
        parts = line.strip().split(" ")
        if len(parts) > 1 and parts[0] == "user":
            users.append(parts[1])
    return users


def parse_config_get(text: str) -> list[tuple[str, str]]:
    """``CONFIG GET`` replies alternate key and value lines.

    An empty value (``requirepass`` unset) is a blank line, so blank
    lines are kept when pairing; only trailing ones are dropped.
    """
    lines = [line.strip() for line in text.splitlines()]
    while lines and not lines[-1]:
        lines.pop()
    if len(lines) % 2:
        lines.append("")
    return [
        (lines[i], lines[i + 1])
        for i in range(0, len(lines), 2)
        if lines[i]
    ]


def parse_info(text: str) -> dict[str, str]:
    """``INFO`` output: ``key:value`` lines, ``#`` section headers skipped."""
    values: dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or ":" not in line:
            continue
        key, _, value = line.partition(":")
        values[key] = value
    return values


# ── Service ─────────────────────────────────────────────────────


class RedisService(SoftwareService):

    async def fetch_databases(self) -> list[DatabaseInfo]:
        """Keyspaces with keys; ``db0`` stands in when a running server has none."""
        result = await self.run("redis-cli INFO KEYSPACE", KEYSPACE_TIMEOUT)
        rows = parse_keyspace(result.output)
        if not rows and await self.is_running():
            rows = [DatabaseInfo(name="db0", size="0 keys")]
        return sorted(rows, key=lambda r: r.name)

    async def create_database(
        self,
        name: str,
        username: str | None = None,
        password: str | None = None,
    ) -> OperationResult:
        return OperationResult.failure("Redis does not support creating named databases")

    async def delete_database(self, name: str) -> OperationResult:
        """Flush keyspace ``dbN``."""
        match = _DB_NAME_RE.match(name)
        if not match:
            return OperationResult.failure(f"Not a Redis keyspace: {name}")
        result = await self.run(f"redis-cli -n {match.group(1)} FLUSHDB", WRITE_TIMEOUT)
        if has_ok_reply(result.output):
            return OperationResult.success(f"{name} flushed")
        return OperationResult.failure(f"Failed to flush {name}", output=result.stripped)

    # ── ACL users (Redis 6+) ────────────────────────────────────

    async def list_users(self) -> list[str]:
        result = await self.run("redis-cli ACL LIST")
        return parse_acl_users(result.output)

    async def create_user(self, username: str, password: str) -> OperationResult:
        if not is_safe_identifier(username):
            return OperationResult.failure(f"Invalid user name: {username}")
        result = await self.run(
            f"redis-cli ACL SETUSER {username} on {shell_quote('>' + password)} '~*' '+@all'"
        )
        if has_ok_reply(result.output):
            return OperationResult.success(f"User {username} created")
        return OperationResult.failure(f"Failed to create user {username}", output=result.stripped)

    async def delete_user(self, username: str) -> OperationResult:
        if not is_safe_identifier(username):
            return OperationResult.failure(f"Invalid user name: {username}")
        result = await self.run(f"redis-cli ACL DELUSER {username}")
        if has_acl_deluser_reply(result.output):
            return OperationResult.success(f"User {username} deleted")
        return OperationResult.failure(f"Failed to delete user {username}", output=result.stripped)

    # ── Runtime config ──────────────────────────────────────────

    async def config_get(self, key: str) -> list[tuple[str, str]]:
        """Live value(s) for ``key``; pairs naming other keys are ignored."""
        result = await self.run(f"redis-cli CONFIG GET {shell_quote(key)} 2>/dev/null")
        if result.exit_code != 0:
            return []
        return [(k, v) for k, v in parse_config_get(result.output) if k == key]

    async def config_set(self, key: str, value: str) -> OperationResult:
        result = await self.run(
            f"redis-cli CONFIG SET {shell_quote(key)} {shell_quote(value)} 2>&1"
        )
        if has_ok_reply(result.output):
            return OperationResult.success(f"{key} set to {value}")
        return OperationResult.failure(f"Failed to set {key}", output=result.stripped)

    async def info(self, section: str = "") -> dict[str, str]:
        command = f"redis-cli INFO {section}".rstrip()
        result = await self.run(f"{command} 2>/dev/null")
        return parse_info(result.output)
