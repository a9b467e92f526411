"""
PHP service: versions, extensions, FPM pools and phpinfo.

Several PHP versions can be installed side by side under ``/etc/php``;
the FPM unit follows the active CLI version (``php8.2-fpm``).
"""

from __future__ import annotations

import logging
import re

from hostctl.core.errors import has_marker, parse_count, succeeded
from hostctl.core.models.result import OperationResult
from hostctl.core.models.state import FPMStatus, PHPExtension
from hostctl.core.services.base import SoftwareService

logger = logging.getLogger(__name__)

PHPINFO_TIMEOUT = 30.0
FPM_STATUS_COMMAND = "curl -s http://127.0.0.1/fpm-status 2>/dev/null"

_VERSION_RE = re.compile(r"^\d+\.\d+$")

# Display label → the row label ``php -r 'phpinfo();'`` prints.
PHPINFO_KEYS: dict[str, str] = {
    "PHP Version": "PHP Version",
    "Zend Engine": "Zend Engine",
    "SAPI": "Server API",
    "Config File": "Loaded Configuration File",
    "Memory Limit": "memory_limit",
    "Max Execution Time": "max_execution_time",
    "Upload Max Filesize": "upload_max_filesize",
    "Post Max Size": "post_max_size",
    "Timezone": "date.timezone",
    "Display Errors": "display_errors",
}

_FPM_FIELDS: dict[str, str] = {
    "pool": "pool",
    "process manager": "process_manager",
    "start time": "start_time",
    "active processes": "active_processes",
    "idle processes": "idle_processes",
    "total processes": "total_processes",
    "max active processes": "max_active_processes",
    "accepted conn": "accepted_connections",
}


# ── Parsers ─────────────────────────────────────────────────────


def parse_php_modules(text: str) -> list[PHPExtension]:
    """``php -m``: one module per line, ``[PHP Modules]`` style headers skipped."""
    names = {
        line.strip() for line in text.splitlines()
        if line.strip() and not line.strip().startswith("[")
    }
    return [PHPExtension(name=name) for name in sorted(names, key=str.lower)]


def parse_disabled_functions(text: str) -> list[str]:
    return sorted(f.strip() for f in text.split(",") if f.strip())


def parse_versions(text: str) -> list[str]:
    """``ls /etc/php`` entries that look like ``8.2``."""
    return [line.strip() for line in text.splitlines() if _VERSION_RE.match(line.strip())]


def parse_fpm_status(text: str) -> FPMStatus | None:
    """``key: value`` lines of the FPM status page; None if it is not one."""
    values: dict[str, str | int] = {}
    for line in text.splitlines():
        key, sep, value = line.partition(":")
        field = _FPM_FIELDS.get(key.strip().lower())
        if not sep or field is None:
            continue
        value = value.strip()
        if field in ("pool", "process_manager", "start_time"):
            values[field] = value
        else:
            values[field] = parse_count(value)
    if not values:
        return None
    return FPMStatus(**values)


def parse_phpinfo(text: str) -> dict[str, str]:
    """Pick the headline rows out of CLI ``phpinfo()`` output."""
    rows: dict[str, str] = {}
    for line in text.splitlines():
        label, sep, value = line.partition("=>")
        if sep:
            rows.setdefault(label.strip(), value.split("=>")[0].strip())
        elif line.startswith("Zend Engine"):
            rows.setdefault("Zend Engine", line.split(",")[0].replace("Zend Engine", "").strip())
    return {
        display: rows[label]
        for display, label in PHPINFO_KEYS.items()
        if label in rows
    }


# ── Service ─────────────────────────────────────────────────────


class PHPService(SoftwareService):

    async def active_version(self) -> str:
        result = await self.run(
            "php -r 'echo PHP_MAJOR_VERSION.\".\".PHP_MINOR_VERSION;' 2>/dev/null"
        )
        version = result.stripped
        return version if _VERSION_RE.match(version) else ""

    async def installed_versions(self) -> list[str]:
        result = await self.run("ls -1 /etc/php/ 2>/dev/null | sort -V")
        return parse_versions(result.output)

    async def service_name(self) -> str:
        """``phpX.Y-fpm`` for the active version, else whatever detection found."""
        version = await self.active_version()
        if version:
            return f"php{version}-fpm"
        return await super().service_name()

    async def is_running(self) -> bool:
        result = await self.run(
            "systemctl list-units --type=service --state=running 2>/dev/null "
            "| grep -E 'php.*fpm' | wc -l"
        )
        return parse_count(result.output) > 0

    async def switch_version(self, version: str) -> OperationResult:
        if not _VERSION_RE.match(version):
            return OperationResult.failure(f"Invalid PHP version: {version}")
        result = await self.run(
            f"sudo update-alternatives --set php /usr/bin/php{version} 2>&1 && echo 'SWITCHED'"
        )
        if has_marker(result.output, "SWITCHED"):
            return OperationResult.success(f"Active PHP version is now {version}")
        return OperationResult.failure(f"Failed to switch PHP to {version}", output=result.stripped)

    # ── Extensions / ini ────────────────────────────────────────

    async def extensions(self) -> list[PHPExtension] | None:
        """Loaded modules, or None when ``php -m`` failed."""
        result = await self.run("php -m 2>/dev/null")
        if not succeeded(result):
            return None
        return parse_php_modules(result.output)

    async def available_extensions(self) -> list[str]:
        result = await self.run(
            "apt-cache search php 2>/dev/null | grep -E '^php[0-9.]+-' "
            "| awk '{print $1}' | sort -u | head -50"
        )
        return result.lines()

    async def disabled_functions(self) -> list[str]:
        result = await self.run("php -r \"echo ini_get('disable_functions');\" 2>/dev/null")
        return parse_disabled_functions(result.output)

    async def fpm_status(self) -> FPMStatus | None:
        result = await self.run(FPM_STATUS_COMMAND)
        return parse_fpm_status(result.output)

    async def phpinfo(self) -> str:
        result = await self.run("php -r 'phpinfo();' 2>/dev/null", PHPINFO_TIMEOUT)
        return result.output
