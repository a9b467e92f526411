"""
Common section providers: service, versions, configuration, config file,
logs and status.

These apply to most applications. Per-application differences live in
the tables at the top of the module (binary lookups, config directives,
fallback paths) so a new application usually needs a table row rather
than a new branch.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any

import yaml

from hostctl.core.commands.quoting import shell_quote
from hostctl.core.errors import SectionProviderError, is_nonempty, succeeded
from hostctl.core.models.application import (
    ApplicationDefinition,
    SectionProviderType,
    canonical_app_id,
)
from hostctl.core.models.result import CommandResult
from hostctl.core.models.software import SoftwareStatusKind
from hostctl.core.models.state import ApplicationState, ConfigValue, LifecycleState
from hostctl.core.sections.base import SectionProvider, require_service
from hostctl.core.services.formatting import format_uptime
from hostctl.core.services.mysql import MySQLService
from hostctl.core.services.nginx import NginxService
from hostctl.core.services.php import PHPService
from hostctl.core.services.postgresql import PostgreSQLService
from hostctl.core.services.redis import RedisService
from hostctl.core.services.runtimes import NodeService, PythonService
from hostctl.core.services.systemd import sanitize_output

if TYPE_CHECKING:
    from hostctl.core.context import SessionContext

logger = logging.getLogger(__name__)


# ── Lookup tables ───────────────────────────────────────────────

WHICH_COMMANDS: dict[str, str] = {
    "nginx": "which nginx",
    "apache": "which apache2 || which httpd",
    "php": "which php",
    "mysql": "which mysql",
    "postgresql": "which psql",
    "redis": "which redis-server",
    "mongodb": "which mongod",
    "python": "which python3 || which python",
    "node": "which node",
}

# (key, display name, description)
Directive = tuple[str, str, str]

# Regex templates per config syntax; the first template that matches wins.
_DIRECTIVE_STYLES: dict[str, tuple[str, ...]] = {
    "block": (r"^\s*{key}\s+([^;]+);",),
    "apache": (r"^\s*{key}\s+(\S+)",),
    "ini": (r"^{key}\s*=\s*(.+)$",),
    "postgres": (r"^{key}\s*=\s*'([^']+)'", r"^{key}\s*=\s*(\S+)"),
    "redis": (r"^{key}\s+(.+)$",),
}

CONFIG_DIRECTIVES: dict[str, tuple[str, list[Directive]]] = {
    "nginx": ("block", [
        ("worker_processes", "Worker Processes", "Number of worker processes (auto or number)"),
        ("worker_connections", "Worker Connections", "Max connections per worker"),
        ("keepalive_timeout", "Keepalive Timeout", "Timeout for keep-alive connections"),
        ("client_max_body_size", "Max Body Size", "Maximum allowed size of the client request body"),
        ("server_tokens", "Server Tokens", "Show/Hide nginx version (on/off)"),
        ("gzip", "Gzip Compression", "Enable/Disable gzip compression (on/off)"),
    ]),
    "apache": ("apache", [
        ("Timeout", "Timeout", "Request timeout in seconds"),
        ("KeepAlive", "Keep Alive", "Enable persistent connections (On/Off)"),
        ("MaxKeepAliveRequests", "Max Keep Alive Requests", "Max requests per connection"),
        ("KeepAliveTimeout", "Keep Alive Timeout", "Timeout between requests"),
        ("ServerTokens", "Server Tokens", "Information revealed about server"),
        ("ServerSignature", "Server Signature", "Footer on server-generated pages"),
    ]),
    "php": ("ini", [
        ("memory_limit", "Memory Limit", "Maximum amount of memory a script may consume"),
        ("max_execution_time", "Max Execution Time", "Maximum time a script can run (seconds)"),
        ("max_input_time", "Max Input Time", "Maximum time parsing request data (seconds)"),
        ("post_max_size", "Post Max Size", "Maximum size of POST data"),
        ("upload_max_filesize", "Upload Max Filesize", "Maximum size of uploaded files"),
        ("max_file_uploads", "Max File Uploads", "Maximum number of simultaneous uploads"),
        ("display_errors", "Display Errors", "Display PHP errors (On/Off)"),
        ("error_reporting", "Error Reporting", "Error reporting level"),
        ("date.timezone", "Timezone", "Default timezone for date functions"),
    ]),
    "mysql": ("ini", [
        ("max_connections", "Max Connections", "Maximum number of concurrent connections"),
        ("max_allowed_packet", "Max Allowed Packet", "Maximum packet size"),
        ("innodb_buffer_pool_size", "InnoDB Buffer Pool", "Size of the buffer pool"),
        ("query_cache_size", "Query Cache Size", "Size of query cache"),
        ("key_buffer_size", "Key Buffer Size", "Size of the key buffer"),
        ("thread_cache_size", "Thread Cache Size", "Number of threads to cache"),
        ("slow_query_log", "Slow Query Log", "Enable slow query logging (0/1)"),
    ]),
    "postgresql": ("postgres", [
        ("max_connections", "Max Connections", "Maximum number of concurrent connections"),
        ("shared_buffers", "Shared Buffers", "Amount of memory for shared buffers"),
        ("effective_cache_size", "Effective Cache Size", "Estimate of available memory"),
        ("work_mem", "Work Memory", "Memory for internal sort operations"),
        ("maintenance_work_mem", "Maintenance Work Mem", "Memory for maintenance operations"),
        ("checkpoint_completion_target", "Checkpoint Completion", "Target for checkpoint completion"),
        ("wal_buffers", "WAL Buffers", "Amount of memory for WAL data"),
    ]),
    "redis": ("redis", [
        ("maxmemory", "Max Memory", "Maximum amount of memory Redis can use"),
        ("maxmemory-policy", "Memory Policy", "How Redis handles memory limits"),
        ("timeout", "Timeout", "Client connection timeout (0 = no timeout)"),
        ("tcp-keepalive", "TCP Keep Alive", "TCP keepalive interval"),
        ("databases", "Databases", "Number of databases"),
        ("save", "RDB Save", "RDB persistence configuration"),
    ]),
}

# Keys read live with ``CONFIG GET`` from a running Redis.
REDIS_LIVE_KEYS: list[Directive] = [
    ("maxmemory", "Max Memory", "Maximum amount of memory Redis can use"),
    ("maxmemory-policy", "Memory Policy", "How Redis handles memory limits"),
    ("port", "Port", "TCP port Redis listens on"),
    ("bind", "Bind Address", "Interfaces Redis accepts connections on"),
    ("requirepass", "Password", "Password clients must AUTH with"),
    ("timeout", "Timeout", "Client connection timeout (0 = no timeout)"),
]

# mongod.conf is YAML; these dotted keys are surfaced.
MONGODB_KEYS: list[Directive] = [
    ("net.port", "Port", "TCP port mongod listens on"),
    ("net.bindIp", "Bind IP", "Interfaces mongod accepts connections on"),
    ("storage.dbPath", "Data Directory", "Where mongod stores data files"),
    ("systemLog.path", "Log Path", "Where mongod writes its log"),
    ("security.authorization", "Authorization", "Role-based access control (enabled/disabled)"),
]

CONFIG_FALLBACKS: dict[str, list[str]] = {
    "nginx": [
        "/etc/nginx/nginx.conf",
        "/www/server/nginx/conf/nginx.conf",
        "/usr/local/nginx/conf/nginx.conf",
    ],
    "apache": [
        "/etc/apache2/apache2.conf",
        "/etc/httpd/conf/httpd.conf",
        "/www/server/apache/conf/httpd.conf",
    ],
    "php": [
        "/etc/php/8.3/fpm/php.ini",
        "/etc/php/8.2/fpm/php.ini",
        "/etc/php/8.1/fpm/php.ini",
        "/etc/php/8.0/fpm/php.ini",
        "/etc/php/7.4/fpm/php.ini",
    ],
    "mysql": [
        "/etc/mysql/mysql.conf.d/mysqld.cnf",
        "/etc/mysql/my.cnf",
        "/etc/my.cnf",
    ],
    "postgresql": [
        "/etc/postgresql/16/main/postgresql.conf",
        "/etc/postgresql/15/main/postgresql.conf",
        "/etc/postgresql/14/main/postgresql.conf",
    ],
    "redis": ["/etc/redis/redis.conf", "/etc/redis.conf"],
}

DEFAULT_LOG_PATHS: dict[str, list[str]] = {
    "nginx": [
        "/var/log/nginx/error.log",
        "/var/log/nginx/access.log",
        "/www/server/nginx/logs/error.log",
        "/www/server/nginx/logs/access.log",
    ],
    "apache": [
        "/var/log/apache2/error.log",
        "/var/log/apache2/access.log",
        "/var/log/httpd/error_log",
        "/var/log/httpd/access_log",
    ],
    "php": [
        "/var/log/php-fpm.log",
        "/var/log/php8.2-fpm.log",
        "/var/log/php8.1-fpm.log",
        "/var/log/php8.0-fpm.log",
    ],
    "mysql": ["/var/log/mysql/error.log", "/var/log/mysql.log", "/var/log/mariadb/mariadb.log"],
    "postgresql": [
        "/var/log/postgresql/postgresql-main.log",
        "/var/log/postgresql/postgresql-15-main.log",
    ],
    "redis": ["/var/log/redis/redis-server.log", "/var/log/redis.log"],
    "mongodb": ["/var/log/mongodb/mongod.log", "/var/log/mongo.log"],
}

# INFO field → status_metrics label, for Redis.
REDIS_STATUS_FIELDS: dict[str, str] = {
    "redis_version": "Version",
    "connected_clients": "Connected Clients",
    "used_memory_human": "Used Memory",
    "used_memory_peak_human": "Peak Memory",
    "total_commands_processed": "Commands Processed",
    "keyspace_hits": "Keyspace Hits",
    "keyspace_misses": "Keyspace Misses",
    "role": "Role",
}

LOG_TAIL_LINES = 200
JOURNAL_LINES = 100


# ── Pure parsers ────────────────────────────────────────────────


def parse_directives(content: str, style: str, directives: list[Directive]) -> list[ConfigValue]:
    """Pick ``directives`` out of a config file written in ``style`` syntax.

    Keys that do not appear in the file are left out.
    """
    templates = _DIRECTIVE_STYLES[style]
    values: list[ConfigValue] = []
    for key, display_name, description in directives:
        for template in templates:
            pattern = template.format(key=re.escape(key))
            match = re.search(pattern, content, re.MULTILINE)
            if match and match.group(1).strip():
                values.append(ConfigValue(
                    key=key,
                    value=match.group(1).strip(),
                    display_name=display_name,
                    description=description,
                ))
                break
    return values


def parse_mongod_config(content: str) -> list[ConfigValue]:
    """Flatten the interesting keys of a YAML ``mongod.conf``."""
    try:
        data = yaml.safe_load(content) or {}
    except yaml.YAMLError as e:
        logger.info("mongod.conf is not valid YAML: %s", e)
        return []
    if not isinstance(data, dict):
        return []

    values: list[ConfigValue] = []
    for dotted, display_name, description in MONGODB_KEYS:
        node: Any = data
        for part in dotted.split("."):
            node = node.get(part) if isinstance(node, dict) else None
        if node is not None:
            values.append(ConfigValue(
                key=dotted,
                value=str(node),
                display_name=display_name,
                description=description,
                section=dotted.split(".")[0],
            ))
    return values


def is_missing_file(result: CommandResult) -> bool:
    """``cat`` failed or timed out, printed nothing, or said the file is absent."""
    if not succeeded(result):
        return True
    return not is_nonempty(result.output) or "No such file" in result.output


# ── Providers ───────────────────────────────────────────────────


class ServiceSectionProvider(SectionProvider):
    """Running state, version and on-disk locations of the service."""

    provider_type = SectionProviderType.SERVICE
    owns = ("is_running", "version", "binary_path", "config_path", "lifecycle")

    async def load_data(self, app: ApplicationDefinition, state: ApplicationState, ctx: SessionContext) -> None:
        service = require_service(app, ctx)
        status = await service.get_status()

        if status.kind in (SoftwareStatusKind.RUNNING, SoftwareStatusKind.STOPPED):
            state.is_running = status.is_running
            state.version = status.version
        elif status.kind == SoftwareStatusKind.INSTALLED:
            state.is_running = False
            state.version = status.version
        else:
            state.is_running = False
            state.version = "Not Installed"

        key = canonical_app_id(app.id)
        which = WHICH_COMMANDS.get(key, f"which {shell_quote(app.id)}")
        result = await ctx.run(which)
        if succeeded(result) and is_nonempty(result.output):
            state.binary_path = result.lines()[0]

        state.config_path = app.service_config.config_path
        state.lifecycle = LifecycleState.from_status(status)


class VersionsSectionProvider(SectionProvider):
    """Active and side-by-side installed versions."""

    provider_type = SectionProviderType.VERSIONS
    owns = ("active_version", "installed_versions")

    async def load_data(self, app: ApplicationDefinition, state: ApplicationState, ctx: SessionContext) -> None:
        service = require_service(app, ctx)

        if isinstance(service, PHPService):
            active = await service.active_version()
            installed = await service.installed_versions()
        elif isinstance(service, (PythonService, NodeService)):
            active = await service.active_version()
            installed = await service.installed_versions() if isinstance(service, NodeService) else []
        elif isinstance(service, PostgreSQLService):
            active = await service.get_version()
            installed = await service.cluster_versions()
        else:
            active = await service.get_version()
            installed = []

        state.active_version = active
        state.installed_versions = installed or ([active] if active else [])


class ConfigurationSectionProvider(SectionProvider):
    """Key/value view of the well-known directives in the main config file."""

    provider_type = SectionProviderType.CONFIGURATION
    owns = ("config_values",)

    async def load_data(self, app: ApplicationDefinition, state: ApplicationState, ctx: SessionContext) -> None:
        key = canonical_app_id(app.id)

        if key == "redis":
            service = ctx.resolver.resolve(key)
            if isinstance(service, RedisService):
                values = await self._redis_live(service)
                if values:
                    state.config_values = values
                    return

        path = state.config_path or app.service_config.config_path
        if not path:
            state.config_values = []
            return

        result = await ctx.run(f"cat {shell_quote(path)}")
        if is_missing_file(result):
            logger.info("Cannot read %s (exit %d)", path, result.exit_code)
            state.config_values = []
            return
        content = result.output

        if key == "mongodb":
            state.config_values = parse_mongod_config(content)
        elif key in CONFIG_DIRECTIVES:
            style, directives = CONFIG_DIRECTIVES[key]
            state.config_values = parse_directives(content, style, directives)
        else:
            state.config_values = []

    @staticmethod
    async def _redis_live(service: RedisService) -> list[ConfigValue]:
        values: list[ConfigValue] = []
        for key, display_name, description in REDIS_LIVE_KEYS:
            for name, value in await service.config_get(key):
                values.append(ConfigValue(
                    key=name,
                    value=value,
                    display_name=display_name,
                    description=description,
                ))
        return values


class ConfigFileSectionProvider(SectionProvider):
    """Raw contents of the main config file, trying known fallback paths."""

    provider_type = SectionProviderType.CONFIG_FILE
    owns = ("config_file_content", "config_path")

    async def load_data(self, app: ApplicationDefinition, state: ApplicationState, ctx: SessionContext) -> None:
        key = canonical_app_id(app.id)
        path = app.service_config.config_path or f"/etc/{app.id}/{app.id}.conf"

        result = await ctx.run(f"sudo cat {shell_quote(path)}")
        if is_missing_file(result):
            for fallback in CONFIG_FALLBACKS.get(key, []):
                if fallback == path:
                    continue
                candidate = await ctx.run(f"sudo cat {shell_quote(fallback)}")
                if not is_missing_file(candidate):
                    result, path = candidate, fallback
                    break

        state.config_path = path
        if is_missing_file(result):
            state.config_file_content = ""
            raise SectionProviderError.load_failed(f"Could not load config file at {path}")
        state.config_file_content = result.output


class LogsSectionProvider(SectionProvider):
    """Tail of the selected log file, falling back to the journal."""

    provider_type = SectionProviderType.LOGS
    owns = ("log_content", "available_log_files", "selected_log_file")

    async def load_data(self, app: ApplicationDefinition, state: ApplicationState, ctx: SessionContext) -> None:
        log_paths = list(app.service_config.log_paths)
        state.available_log_files = log_paths
        if state.selected_log_file not in log_paths:
            state.selected_log_file = log_paths[0] if log_paths else ""

        if log_paths:
            candidates = [state.selected_log_file]
        else:
            candidates = DEFAULT_LOG_PATHS.get(canonical_app_id(app.id), [])

        for path in candidates:
            result = await ctx.run(f"sudo tail -n {LOG_TAIL_LINES} {shell_quote(path)} 2>/dev/null")
            if succeeded(result) and is_nonempty(result.output):
                state.selected_log_file = path
                state.log_content = result.output
                return

        unit = app.service_config.service_name
        if unit:
            result = await ctx.run(
                f"sudo journalctl -u {shell_quote(unit)} -n {JOURNAL_LINES} --no-pager 2>/dev/null"
            )
            if succeeded(result) and is_nonempty(result.output):
                state.log_content = result.output
                return

        state.log_content = "No logs found.\nChecked paths: " + ", ".join(candidates)


class StatusSectionProvider(SectionProvider):
    """Live runtime metrics of a running service."""

    provider_type = SectionProviderType.STATUS
    owns = ("nginx_status", "mysql_status", "fpm_status", "status_metrics")

    async def load_data(self, app: ApplicationDefinition, state: ApplicationState, ctx: SessionContext) -> None:
        service = require_service(app, ctx)

        if isinstance(service, NginxService):
            state.nginx_status = await service.stub_status()
        elif isinstance(service, MySQLService):
            state.mysql_status = await service.fetch_status()
        elif isinstance(service, PostgreSQLService):
            state.status_metrics = {
                "Version": await service.get_version(),
                "Connections": str(await service.connection_count()),
            }
        elif isinstance(service, RedisService):
            info = await service.info()
            metrics = {
                label: info[field]
                for field, label in REDIS_STATUS_FIELDS.items()
                if field in info
            }
            if "uptime_in_seconds" in info:
                metrics["Uptime"] = format_uptime(info["uptime_in_seconds"])
            state.status_metrics = metrics
        elif isinstance(service, PHPService):
            state.fpm_status = await service.fpm_status()
        else:
            unit = await service.service_name()
            result = await ctx.run(
                f"systemctl status {shell_quote(unit)} --no-pager -l -n 5 2>/dev/null"
            )
            if is_nonempty(result.output):
                state.status_metrics = {"Status": sanitize_output(result.output).strip()}
