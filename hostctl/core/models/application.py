"""
Application model: declarative capability registry metadata.

An ApplicationDefinition says which sections apply to a piece of
software, how its service is laid out on disk, and which capabilities
gate the actions offered for it. Definitions are static: loaded once
from applications.yml at startup and never mutated afterwards.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class ApplicationCategory(StrEnum):
    WEB_SERVER = "web_server"
    DATABASE = "database"
    RUNTIME = "runtime"
    CACHE = "cache"
    TOOL = "tool"


class Capability(StrEnum):
    """Feature flags gating which sections/actions are offered."""

    CONTROLLABLE = "controllable"
    CONFIGURABLE = "configurable"
    HAS_MODULES = "hasModules"
    HAS_EXTENSIONS = "hasExtensions"
    HAS_DATABASES = "hasDatabases"
    HAS_USERS = "hasUsers"
    HAS_LOGS = "hasLogs"
    MULTI_VERSION = "multiVersion"
    HAS_STATUS = "hasStatus"
    HAS_SITES = "hasSites"
    HAS_SECURITY = "hasSecurity"
    HAS_FPM = "hasFPM"


class SectionProviderType(StrEnum):
    """Closed set of section kinds.

    Adding a member requires a provider registered for it in
    ``hostctl.core.sections.registry`` (enforced by tests) and a
    renderer on the consuming side.
    """

    # Common
    SERVICE = "service"
    VERSIONS = "versions"
    CONFIGURATION = "configuration"
    CONFIG_FILE = "configFile"
    LOGS = "logs"
    STATUS = "status"

    # Web servers
    MODULES = "modules"
    SECURITY = "security"
    WAF_STATS = "wafStats"
    SITES = "sites"
    ERROR_PAGES = "errorPages"

    # PHP
    EXTENSIONS = "extensions"
    DISABLED_FUNCTIONS = "disabledFunctions"
    FPM_PROFILE = "fpmProfile"
    PHPINFO = "phpinfo"
    UPLOAD_LIMITS = "uploadLimits"
    TIMEOUTS = "timeouts"

    # Databases
    DATABASES = "databases"
    USERS = "users"
    BACKUP = "backup"


class SectionDefinition(BaseModel):
    """One administrative section of an application."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    icon: str = ""
    provider_type: SectionProviderType
    is_default: bool = False
    requires_running: bool = False   # host service must be active to load
    order: int = 0


class ServiceConfiguration(BaseModel):
    """Where a service lives on a typical host."""

    model_config = ConfigDict(frozen=True)

    service_name: str = ""
    config_path: str = ""
    log_paths: list[str] = Field(default_factory=list)
    binary_path: str = ""
    pid_path: str | None = None
    socket_path: str | None = None


class ApplicationDefinition(BaseModel):
    """Static description of one manageable application. Identity is ``id``."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    slug: str = ""
    icon: str = ""
    category: ApplicationCategory = ApplicationCategory.TOOL
    theme_color: str = "#888888"
    sections: list[SectionDefinition] = Field(default_factory=list)
    service_config: ServiceConfiguration = Field(default_factory=ServiceConfiguration)
    capabilities: frozenset[Capability] = Field(default_factory=frozenset)
    packages: list[str] = Field(default_factory=list)   # install package names
    # Per package-manager replacements for ``packages`` (``{"dnf": ["httpd"]}``)
    package_overrides: dict[str, list[str]] = Field(default_factory=dict)

    def __hash__(self) -> int:
        return hash(self.id)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ApplicationDefinition):
            return NotImplemented
        return self.id == other.id

    @property
    def sorted_sections(self) -> list[SectionDefinition]:
        """Sections in non-decreasing ``order``; ties keep declaration order."""
        return sorted(self.sections, key=lambda s: s.order)

    @property
    def default_section(self) -> SectionDefinition | None:
        """First section flagged default, else the first declared one."""
        for section in self.sections:
            if section.is_default:
                return section
        return self.sections[0] if self.sections else None

    def packages_for(self, manager: str) -> list[str]:
        """Package names to install with ``manager`` (apt, dnf, ...)."""
        return list(self.package_overrides.get(str(manager), self.packages))

    def has_capability(self, capability: Capability | str) -> bool:
        return Capability(capability) in self.capabilities

    def get_section(self, section_id: str) -> SectionDefinition | None:
        """Look up a section by id (case-insensitive) or provider type."""
        wanted = section_id.lower()
        for section in self.sections:
            if section.id.lower() == wanted or section.provider_type.value.lower() == wanted:
                return section
        return None


# Package and unit names that answer to a different application id.
SOFTWARE_ALIASES: dict[str, str] = {
    "apache2": "apache",
    "httpd": "apache",
    "mariadb": "mysql",
    "postgres": "postgresql",
    "nodejs": "node",
    "mongo": "mongodb",
    "mongod": "mongodb",
    "redis-server": "redis",
}


def canonical_app_id(name: str) -> str:
    """Lower-cased application id, with aliases resolved."""
    key = name.strip().lower()
    return SOFTWARE_ALIASES.get(key, key)
