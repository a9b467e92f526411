"""
ApplicationState: the per-session result bag populated by section providers.

One instance exists per open administration session. Providers write
only the fields that belong to their section (each provider declares
them in ``SectionProvider.owns``); renderers only read. Between
reloads the state is reset to defaults rather than replaced.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Iterable

from pydantic import BaseModel, Field

from hostctl.core.models.software import SoftwareStatus, SoftwareStatusKind


# ── Row types ───────────────────────────────────────────────────


class ConfigValue(BaseModel):
    key: str
    value: str
    display_name: str = ""
    description: str = ""
    section: str | None = None


class DatabaseInfo(BaseModel):
    name: str
    size: str = ""
    table_count: int = 0

    @property
    def id(self) -> str:
        return self.name


class DatabaseUser(BaseModel):
    id: str                 # usually "user@host"
    username: str
    host: str = ""
    privileges: str = ""


class PHPExtension(BaseModel):
    name: str
    version: str | None = None
    is_loaded: bool = True


class FPMStatus(BaseModel):
    pool: str = ""
    process_manager: str = ""
    start_time: str = ""
    active_processes: int = 0
    idle_processes: int = 0
    total_processes: int = 0
    max_active_processes: int = 0
    accepted_connections: int = 0


class MySQLStatus(BaseModel):
    version: str = ""
    uptime: str = "0"
    threads_connected: str = "0"
    questions: str = "0"
    slow_queries: str = "0"
    open_tables: str = "0"
    qps: str = "0.0"


class NginxStatus(BaseModel):
    active_connections: int = 0
    accepts: int = 0
    handled: int = 0
    requests: int = 0
    reading: int = 0
    writing: int = 0
    waiting: int = 0


class SecurityStats(BaseModel):
    total: str = "0"
    last_24h: str = "0"


class WafLogEntry(BaseModel):
    ip: str
    time: str
    request: str
    status: str
    bytes: str
    referrer: str
    user_agent: str
    country: str = "Unknown"


class SiteInfo(BaseModel):
    name: str
    enabled: bool = True
    path: str = ""


# ── Lifecycle ───────────────────────────────────────────────────


class LifecycleKind(StrEnum):
    NOT_INSTALLED = "not_installed"
    INSTALLING = "installing"
    INSTALLED = "installed"
    MULTIPLE_VERSIONS_INSTALLED = "multiple_versions_installed"
    RUNNING = "running"
    STOPPED = "stopped"
    BROKEN = "broken"


class LifecycleState(BaseModel):
    """Where an application sits between not-installed and running."""

    kind: LifecycleKind = LifecycleKind.NOT_INSTALLED
    version: str = ""
    versions: list[str] = Field(default_factory=list)
    active: str | None = None
    progress: float = 0.0
    phase: str = ""
    reason: str = ""

    @property
    def is_actionable(self) -> bool:
        return self.kind != LifecycleKind.INSTALLING

    @property
    def display_text(self) -> str:
        match self.kind:
            case LifecycleKind.NOT_INSTALLED:
                return "Not Installed"
            case LifecycleKind.INSTALLING:
                return f"Installing ({int(self.progress * 100)}%)"
            case LifecycleKind.INSTALLED:
                return f"Installed: {self.version}"
            case LifecycleKind.MULTIPLE_VERSIONS_INSTALLED:
                text = f"Installed: {len(self.versions)} versions"
                return text + (f" (Active: {self.active})" if self.active else "")
            case LifecycleKind.RUNNING:
                return f"Running: {self.version}"
            case LifecycleKind.STOPPED:
                return f"Stopped: {self.version}"
            case LifecycleKind.BROKEN:
                return f"Error: {self.reason}"
        return self.kind.value

    @classmethod
    def from_status(
        cls,
        status: SoftwareStatus,
        versions: list[str] | None = None,
        active: str | None = None,
    ) -> LifecycleState:
        """Map the tri-state software status onto a lifecycle.

        An installed runtime with more than one version side by side
        becomes ``multiple_versions_installed``.
        """
        versions = versions or []
        match status.kind:
            case SoftwareStatusKind.RUNNING:
                return cls(kind=LifecycleKind.RUNNING, version=status.version)
            case SoftwareStatusKind.STOPPED:
                return cls(kind=LifecycleKind.STOPPED, version=status.version)
            case SoftwareStatusKind.INSTALLED:
                if len(versions) > 1:
                    return cls(
                        kind=LifecycleKind.MULTIPLE_VERSIONS_INSTALLED,
                        versions=versions,
                        active=active,
                    )
                return cls(kind=LifecycleKind.INSTALLED, version=status.version)
        return cls()


# ── State bag ───────────────────────────────────────────────────


class ApplicationState(BaseModel):
    """Mutable per-session state read by renderers."""

    lifecycle: LifecycleState = Field(default_factory=LifecycleState)

    # service
    is_running: bool = False
    version: str = ""
    binary_path: str = ""
    config_path: str = ""

    # versions
    active_version: str = ""
    installed_versions: list[str] = Field(default_factory=list)

    # configuration / configFile
    config_values: list[ConfigValue] = Field(default_factory=list)
    config_file_content: str = ""

    # logs
    log_content: str = ""
    available_log_files: list[str] = Field(default_factory=list)
    selected_log_file: str = ""

    # modules
    modules: list[str] = Field(default_factory=list)
    configure_arguments: list[str] = Field(default_factory=list)

    # php
    extensions: list[PHPExtension] = Field(default_factory=list)
    available_extensions: list[str] = Field(default_factory=list)
    disabled_functions: list[str] = Field(default_factory=list)
    fpm_status: FPMStatus | None = None
    fpm_profile_content: str = ""
    phpinfo_html: str = ""
    phpinfo_data: dict[str, str] = Field(default_factory=dict)

    # databases / users / backup
    databases: list[DatabaseInfo] = Field(default_factory=list)
    users: list[DatabaseUser] = Field(default_factory=list)
    backups: list[str] = Field(default_factory=list)

    # status
    mysql_status: MySQLStatus | None = None
    nginx_status: NginxStatus | None = None
    status_metrics: dict[str, str] = Field(default_factory=dict)

    # web server
    sites: list[SiteInfo] = Field(default_factory=list)
    security_rules_status: dict[str, bool] = Field(default_factory=dict)
    security_stats: SecurityStats = Field(default_factory=SecurityStats)
    error_pages: dict[str, str] = Field(default_factory=dict)
    waf_logs: list[WafLogEntry] = Field(default_factory=list)
    waf_logs_total: int = 0
    waf_sites: list[str] = Field(default_factory=list)
    current_waf_site: str = "All"

    # install
    install_status: str = ""

    # banner
    error_message: str = ""
    success_message: str = ""

    def reset(self) -> None:
        """Restore every field to its default, in place."""
        fresh = type(self)()
        for name in type(self).model_fields:
            setattr(self, name, getattr(fresh, name))

    def copy_fields(self, source: ApplicationState, names: Iterable[str]) -> None:
        """Overwrite ``names`` on this state with the values held by ``source``."""
        for name in names:
            if name not in type(self).model_fields:
                raise KeyError(f"Unknown state field: {name}")
            setattr(self, name, getattr(source, name))

    def scratch(self) -> ApplicationState:
        """Deep copy for a provider to write into before committing."""
        return self.model_copy(deep=True)
