"""Apache httpd service: loaded modules, sites and config testing (apache2 or httpd layouts)."""

from __future__ import annotations

import logging

from hostctl.core.errors import is_config_test_ok
from hostctl.core.models.result import OperationResult
from hostctl.core.models.state import SiteInfo
from hostctl.core.services.base import SoftwareService
from hostctl.core.services.nginx import merge_sites, parse_listing

logger = logging.getLogger(__name__)


def parse_apache_modules(text: str) -> list[str]:
    """``apachectl -M`` lines like `` ssl_module (shared)`` → ``ssl``."""
    modules = {
        line.split()[0].replace("_module", "")
        for line in text.splitlines()
        if "_module" in line and line.split()
    }
    return sorted(modules)


class ApacheService(SoftwareService):

    async def modules(self) -> list[str]:
        result = await self.run("apache2ctl -M 2>/dev/null || httpd -M 2>/dev/null")
        return parse_apache_modules(result.output)

    async def test_config(self) -> OperationResult:
        result = await self.run("sudo apache2ctl -t 2>&1 || sudo apachectl -t 2>&1")
        if is_config_test_ok(result.output):
            return OperationResult.success("Configuration test passed")
        return OperationResult.failure("Configuration test failed", output=result.stripped)

    async def sites(self) -> list[SiteInfo]:
        available = await self.run("ls -1 /etc/apache2/sites-available/ 2>/dev/null")
        enabled = await self.run("ls -1 /etc/apache2/sites-enabled/ 2>/dev/null")
        drop_ins = await self.run("ls -1 /etc/httpd/conf.d/ 2>/dev/null")
        return merge_sites(
            parse_listing(available.output),
            parse_listing(enabled.output),
            "/etc/apache2",
            parse_listing(drop_ins.output),
            "/etc/httpd/conf.d",
        )
