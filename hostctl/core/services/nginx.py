"""
Nginx service: build modules, stub_status metrics, sites, access logs
and config testing.
"""

from __future__ import annotations

import logging
import re

from hostctl.core.commands.quoting import shell_quote
from hostctl.core.errors import is_config_test_ok, parse_count, succeeded
from hostctl.core.models.result import OperationResult
from hostctl.core.models.state import NginxStatus, SiteInfo, WafLogEntry
from hostctl.core.services.base import SoftwareService

logger = logging.getLogger(__name__)

STUB_STATUS_COMMAND = (
    "curl -s http://127.0.0.1/nginx_status 2>/dev/null || "
    "curl -s http://localhost/nginx_status 2>/dev/null"
)
STATUS_TIMEOUT = 5.0
ERROR_PAGES_CONF = "/etc/nginx/conf.d/error_pages.conf"
WAF_PAGE_SIZE = 100

# Checked in order when the site's own access_log cannot be resolved.
ACCESS_LOG_PATHS = (
    "/var/log/nginx/access.log",
    "/www/wwwlogs/access.log",
    "/usr/local/nginx/logs/access.log",
    "/var/log/httpd/access_log",
)

_ACTIVE_RE = re.compile(r"Active connections:\s*(\d+)")
_RWW_RE = re.compile(r"Reading:\s*(\d+)\s*Writing:\s*(\d+)\s*Waiting:\s*(\d+)")
_ACCESS_LOG_RE = re.compile(r'^(\S+) \S+ \S+ \[(.+?)\] "(.*?)" (\d{3}) (\d+) "(.*?)" "(.*?)"')
_LOG_PATH_RE = re.compile(r"\s/[^;\s]+")


# ── Parsers ─────────────────────────────────────────────────────


def parse_stub_status(text: str) -> NginxStatus:
    """Parse ``stub_status`` output; anything missing stays zero.

    Active connections: 3
    server accepts handled requests
     120 120 340
    Reading: 0 Writing: 1 Waiting: 2
    """
    status = NginxStatus()
    match = _ACTIVE_RE.search(text)
    if match:
        status.active_connections = int(match.group(1))

    for line in text.splitlines():
        parts = line.split()
        if len(parts) == 3 and all(p.isdigit() for p in parts):
            status.accepts, status.handled, status.requests = (int(p) for p in parts)
            break

    match = _RWW_RE.search(text)
    if match:
        status.reading, status.writing, status.waiting = (int(g) for g in match.groups())
    return status


def parse_configure_arguments(text: str) -> tuple[list[str], list[str]]:
    """``nginx -V`` → (module names, raw configure arguments).

    ``--with-http_ssl_module`` yields ``http_ssl``; ``--add-module=/x/y``
    and ``--add-dynamic-module=/x/y`` yield the basename ``y``.
    """
    _, marker, tail = text.partition("configure arguments:")
    if not marker:
        return [], []
    arguments = tail.strip().split()
    modules: set[str] = set()
    for arg in arguments:
        if arg.startswith("--with-") and "=" not in arg:
            name = arg[len("--with-"):]
            modules.add(name.replace("_module", ""))
        elif arg.startswith(("--add-module=", "--add-dynamic-module=")):
            path = arg.split("=", 1)[1].rstrip("/")
            modules.add(path.rsplit("/", 1)[-1])
    return sorted(modules), arguments


def parse_listing(text: str) -> list[str]:
    """Non-empty entries of an ``ls -1`` listing."""
    return [line.strip() for line in text.splitlines() if line.strip()]


def merge_sites(
    available: list[str],
    enabled: list[str],
    base_dir: str,
    drop_ins: list[str] | None = None,
    drop_in_dir: str = "",
) -> list[SiteInfo]:
    """Combine ``sites-available``/``sites-enabled`` (and ``conf.d``) listings.

    A site is enabled when it appears in ``sites-enabled``; drop-in
    ``*.conf`` files are always live.
    """
    enabled_set = set(enabled)
    sites = [
        SiteInfo(name=name, enabled=name in enabled_set, path=f"{base_dir}/sites-available/{name}")
        for name in available
    ]
    sites += [
        SiteInfo(name=name, enabled=True, path=f"{base_dir}/sites-enabled/{name}")
        for name in enabled
        if name not in available
    ]
    sites += [
        SiteInfo(name=name, enabled=True, path=f"{drop_in_dir}/{name}")
        for name in drop_ins or []
        if name.endswith(".conf")
    ]
    return sorted(sites, key=lambda s: s.name)


def parse_access_log(text: str) -> list[WafLogEntry]:
    """Combined-format access log lines; anything else is skipped."""
    entries: list[WafLogEntry] = []
    for line in text.splitlines():
        match = _ACCESS_LOG_RE.match(line)
        if not match:
            continue
        ip, time, request, status, size, referrer, agent = match.groups()
        entries.append(WafLogEntry(
            ip=ip,
            time=time,
            request=request,
            status=status,
            bytes=size,
            referrer=referrer,
            user_agent=agent,
        ))
    return entries


def log_window(total: int, page: int, page_size: int) -> tuple[int, int] | None:
    """(lines from the end, lines to keep) for page ``page``, newest first.

    None when the page lies past the start of the file.
    """
    end = total - (page - 1) * page_size
    if end < 1:
        return None
    start = max(1, end - page_size + 1)
    return total - start + 1, end - start + 1


def parse_access_log_directive(line: str) -> str:
    """Path of an ``access_log /path [format];`` line ("" for ``off``)."""
    clean = line.strip()
    if not clean.startswith("access_log") or "off;" in clean:
        return ""
    match = _LOG_PATH_RE.search(clean)
    return match.group(0).strip() if match else ""


def parse_error_pages(text: str) -> dict[str, str]:
    """``error_page 404 /404.html;`` lines → {"404": "/404.html"}."""
    pages: dict[str, str] = {}
    for line in text.splitlines():
        parts = line.split()
        if not parts or parts[0].startswith("#"):
            continue
        if len(parts) >= 3 and parts[0] == "error_page":
            pages[parts[1]] = parts[2].rstrip(";")
    return pages

# ── Service ─────────────────────────────────────────────────────


class NginxService(SoftwareService):

    async def modules(self) -> tuple[list[str], list[str]]:
        """Compiled-in plus dynamically enabled modules, with configure args."""
        build = await self.run("nginx -V 2>&1")
        modules, arguments = parse_configure_arguments(build.output)
        enabled = await self.run(
            "ls /etc/nginx/modules-enabled/*.conf 2>/dev/null | xargs -I {} basename {} .conf"
        )
        names = set(modules) | set(parse_listing(enabled.output))
        return sorted(names), arguments

    async def stub_status(self) -> NginxStatus:
        result = await self.run(STUB_STATUS_COMMAND, STATUS_TIMEOUT)
        return parse_stub_status(result.output)

    async def test_config(self) -> OperationResult:
        result = await self.run("sudo nginx -t 2>&1")
        if is_config_test_ok(result.output):
            return OperationResult.success("Configuration test passed")
        return OperationResult.failure("Configuration test failed", output=result.stripped)

    async def reload(self) -> bool:
        """Reload only a configuration that passes ``nginx -t``."""
        if not (await self.test_config()).ok:
            logger.warning("Refusing to reload nginx: configuration test failed")
            return False
        return await super().reload()

    # ── Sites ───────────────────────────────────────────────────

    async def sites(self) -> list[SiteInfo]:
        available = await self.run("ls -1 /etc/nginx/sites-available/ 2>/dev/null")
        enabled = await self.run("ls -1 /etc/nginx/sites-enabled/ 2>/dev/null")
        drop_ins = await self.run("ls -1 /etc/nginx/conf.d/ 2>/dev/null")
        return merge_sites(
            parse_listing(available.output),
            parse_listing(enabled.output),
            "/etc/nginx",
            parse_listing(drop_ins.output),
            "/etc/nginx/conf.d",
        )

    async def enabled_site_names(self) -> list[str]:
        result = await self.run("ls -1 /etc/nginx/sites-enabled/ 2>/dev/null")
        return parse_listing(result.output)

    # ── Access logs ─────────────────────────────────────────────

    async def access_log_path(self, site: str = "All") -> str:
        """Access log of ``site``, else the global one, else the stock path."""
        if site != "All":
            conf = shell_quote(f"/etc/nginx/sites-enabled/{site}")
            result = await self.run(f"grep 'access_log' {conf} 2>/dev/null | head -1")
            path = parse_access_log_directive(result.output)
            if path:
                return path

        result = await self.run("nginx -T 2>/dev/null | grep 'access_log' | head -n 3")
        for line in result.lines():
            path = parse_access_log_directive(line)
            if path and await self._is_file(path):
                return path

        for path in ACCESS_LOG_PATHS:
            if await self._is_file(path):
                return path
        return ACCESS_LOG_PATHS[0]

    async def waf_logs(
        self,
        site: str = "All",
        page: int = 1,
        page_size: int = WAF_PAGE_SIZE,
    ) -> tuple[list[WafLogEntry], int]:
        """One page of access log entries, newest first, plus the line total."""
        path = shell_quote(await self.access_log_path(site))
        count = await self.run(f"wc -l < {path} 2>/dev/null")
        if not succeeded(count):
            return [], 0
        total = parse_count(count.output)
        if total == 0:
            return [], 0

        window = log_window(total, page, page_size)
        if window is None:
            return [], total
        from_end, keep = window
        result = await self.run(f"tail -n {from_end} {path} | head -n {keep}")
        return list(reversed(parse_access_log(result.output))), total

    async def _is_file(self, path: str) -> bool:
        return (await self.run(f"test -f {shell_quote(path)}")).exit_code == 0

    # ── Error pages ─────────────────────────────────────────────

    async def error_pages(self) -> dict[str, str]:
        result = await self.run(f"cat {ERROR_PAGES_CONF} 2>/dev/null")
        if not succeeded(result):
            return {}
        return parse_error_pages(result.output)
