"""
Database section providers: databases, users and backups.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from hostctl.core.errors import SectionProviderError
from hostctl.core.models.application import ApplicationDefinition, SectionProviderType, canonical_app_id
from hostctl.core.models.state import ApplicationState, DatabaseUser
from hostctl.core.sections.base import SectionProvider, require_service
from hostctl.core.services.mongodb import MongoDBService
from hostctl.core.services.mysql import MySQLService
from hostctl.core.services.postgresql import PostgreSQLService
from hostctl.core.services.redis import RedisService

if TYPE_CHECKING:
    from hostctl.core.context import SessionContext

# Where each engine's backup_database() writes its dumps.
BACKUP_GLOBS: dict[str, str] = {
    "mysql": "/tmp/*.sql",
    "postgresql": "/tmp/*.sql",
    "mongodb": "/tmp/*.archive.gz",
}


class DatabasesSectionProvider(SectionProvider):
    provider_type = SectionProviderType.DATABASES
    owns = ("databases",)

    async def load_data(self, app: ApplicationDefinition, state: ApplicationState, ctx: SessionContext) -> None:
        service = require_service(app, ctx)
        if isinstance(service, (MySQLService, PostgreSQLService, MongoDBService)):
            state.databases = await service.database_rows()
        elif isinstance(service, RedisService):
            state.databases = await service.fetch_databases()
        else:
            raise SectionProviderError.not_supported(self.provider_type)


class UsersSectionProvider(SectionProvider):
    provider_type = SectionProviderType.USERS
    owns = ("users",)

    async def load_data(self, app: ApplicationDefinition, state: ApplicationState, ctx: SessionContext) -> None:
        service = require_service(app, ctx)
        if isinstance(service, (MySQLService, PostgreSQLService, MongoDBService)):
            state.users = await service.user_rows()
        elif isinstance(service, RedisService):
            state.users = [
                DatabaseUser(id=name, username=name)
                for name in await service.list_users()
            ]
        else:
            raise SectionProviderError.not_supported(self.provider_type)


class BackupSectionProvider(SectionProvider):
    """Dump files already present on the host, newest first."""

    provider_type = SectionProviderType.BACKUP
    owns = ("backups",)

    async def load_data(self, app: ApplicationDefinition, state: ApplicationState, ctx: SessionContext) -> None:
        pattern = BACKUP_GLOBS.get(canonical_app_id(app.id))
        if pattern is None:
            raise SectionProviderError.not_supported(self.provider_type)
        result = await ctx.run(f"ls -1t {pattern} 2>/dev/null")
        state.backups = result.lines() if result.ok else []
