"""
Web server section providers: modules, security, sites, WAF logs and
error pages (nginx and Apache).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from hostctl.core.errors import SectionProviderError, is_nonempty, succeeded
from hostctl.core.models.application import ApplicationDefinition, SectionProviderType
from hostctl.core.models.state import ApplicationState, SecurityStats
from hostctl.core.sections.base import SectionProvider, require_service, service_of
from hostctl.core.services.apache import ApacheService
from hostctl.core.services.nginx import WAF_PAGE_SIZE, NginxService

if TYPE_CHECKING:
    from hostctl.core.context import SessionContext

logger = logging.getLogger(__name__)

# (rule label, probe); a rule is on when the probe exits 0 with output.
NGINX_SECURITY_CHECKS: list[tuple[str, str]] = [
    ("ModSecurity", "ls /etc/nginx/modsec/modsecurity.conf 2>/dev/null"),
    ("OWASP CRS", "ls /etc/nginx/modsec/crs-setup.conf 2>/dev/null || ls /usr/share/modsecurity-crs/ 2>/dev/null"),
    ("Rate Limiting", "grep -r 'limit_req_zone' /etc/nginx/ 2>/dev/null"),
    ("SSL/TLS", "grep -r 'ssl_certificate' /etc/nginx/sites-enabled/ 2>/dev/null"),
    ("Headers Security", "grep -rE 'add_header.*(X-Frame-Options|X-Content-Type-Options|X-XSS-Protection)' /etc/nginx/ 2>/dev/null"),
]

APACHE_SECURITY_CHECKS: list[tuple[str, str]] = [
    ("ModSecurity", "apache2ctl -M 2>/dev/null | grep security"),
    ("ModEvasive", "apache2ctl -M 2>/dev/null | grep evasive"),
    ("SSL/TLS", "apache2ctl -M 2>/dev/null | grep ssl"),
    ("Headers", "apache2ctl -M 2>/dev/null | grep headers"),
]

MODSEC_AUDIT_LOG = "/var/log/modsec_audit.log"


class ModulesSectionProvider(SectionProvider):
    provider_type = SectionProviderType.MODULES
    owns = ("modules", "configure_arguments")

    async def load_data(self, app: ApplicationDefinition, state: ApplicationState, ctx: SessionContext) -> None:
        service = require_service(app, ctx)
        if isinstance(service, NginxService):
            state.modules, state.configure_arguments = await service.modules()
        elif isinstance(service, ApacheService):
            state.modules = await service.modules()
            state.configure_arguments = []
        else:
            raise SectionProviderError.not_supported(self.provider_type)


class SecuritySectionProvider(SectionProvider):
    """Which hardening rules are in place, and ModSecurity audit counts."""

    provider_type = SectionProviderType.SECURITY
    owns = ("security_rules_status", "security_stats")

    async def load_data(self, app: ApplicationDefinition, state: ApplicationState, ctx: SessionContext) -> None:
        service = require_service(app, ctx)
        if isinstance(service, NginxService):
            checks = NGINX_SECURITY_CHECKS
        elif isinstance(service, ApacheService):
            checks = APACHE_SECURITY_CHECKS
        else:
            raise SectionProviderError.not_supported(self.provider_type)

        rules: dict[str, bool] = {}
        for label, command in checks:
            result = await ctx.run(command)
            rules[label] = succeeded(result) and is_nonempty(result.output)
        state.security_rules_status = rules

        if isinstance(service, NginxService):
            state.security_stats = await self._audit_stats(ctx)
        else:
            state.security_stats = SecurityStats()

    @staticmethod
    async def _audit_stats(ctx: SessionContext) -> SecurityStats:
        stats = SecurityStats()
        total = await ctx.run(f"wc -l {MODSEC_AUDIT_LOG} 2>/dev/null | awk '{{print $1}}'")
        if succeeded(total) and is_nonempty(total.output):
            stats.total = total.stripped
        recent = await ctx.run(
            f"find {MODSEC_AUDIT_LOG} -mtime -1 -exec wc -l {{}} \\; 2>/dev/null | awk '{{print $1}}'"
        )
        if succeeded(recent) and is_nonempty(recent.output):
            stats.last_24h = recent.stripped
        return stats


class SitesSectionProvider(SectionProvider):
    """Virtual hosts: ``sites-available``/``sites-enabled`` plus ``conf.d``."""

    provider_type = SectionProviderType.SITES
    owns = ("sites",)

    async def load_data(self, app: ApplicationDefinition, state: ApplicationState, ctx: SessionContext) -> None:
        service = require_service(app, ctx)
        if not isinstance(service, (NginxService, ApacheService)):
            raise SectionProviderError.not_supported(self.provider_type)
        state.sites = await service.sites()


class WafStatsSectionProvider(SectionProvider):
    """First page of the access log for the selected site."""

    provider_type = SectionProviderType.WAF_STATS
    owns = ("waf_sites", "waf_logs", "waf_logs_total", "current_waf_site")

    async def load_data(self, app: ApplicationDefinition, state: ApplicationState, ctx: SessionContext) -> None:
        service = service_of(app, ctx, NginxService, self.provider_type)

        if not state.waf_sites:
            state.waf_sites = ["All", *await service.enabled_site_names()]
        if state.current_waf_site not in state.waf_sites:
            state.current_waf_site = "All"

        state.waf_logs, state.waf_logs_total = await service.waf_logs(
            state.current_waf_site, page=1, page_size=WAF_PAGE_SIZE,
        )
        logger.debug("Loaded %d of %d access log lines", len(state.waf_logs), state.waf_logs_total)


class ErrorPagesSectionProvider(SectionProvider):
    """Custom ``error_page`` mappings from the nginx drop-in file."""

    provider_type = SectionProviderType.ERROR_PAGES
    owns = ("error_pages",)

    async def load_data(self, app: ApplicationDefinition, state: ApplicationState, ctx: SessionContext) -> None:
        service = service_of(app, ctx, NginxService, self.provider_type)
        state.error_pages = await service.error_pages()
