"""
PHP section providers: extensions, disabled functions, FPM profile,
phpinfo, upload limits and timeouts.

All of them require the PHP service; any other application gets
``not_supported``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from hostctl.core.commands.quoting import shell_quote
from hostctl.core.errors import SectionProviderError, is_nonempty, succeeded
from hostctl.core.models.application import ApplicationDefinition, SectionProviderType
from hostctl.core.models.state import ApplicationState, ConfigValue
from hostctl.core.sections.base import SectionProvider, service_of
from hostctl.core.sections.common import Directive, is_missing_file, parse_directives
from hostctl.core.services.php import PHPService, parse_phpinfo

if TYPE_CHECKING:
    from hostctl.core.context import SessionContext

UPLOAD_DIRECTIVES: list[Directive] = [
    ("file_uploads", "File Uploads", "Allow HTTP file uploads (On/Off)"),
    ("upload_max_filesize", "Upload Max Filesize", "Maximum size of uploaded files"),
    ("post_max_size", "Post Max Size", "Maximum size of POST data"),
    ("max_file_uploads", "Max File Uploads", "Maximum number of simultaneous uploads"),
    ("memory_limit", "Memory Limit", "Maximum amount of memory a script may consume"),
]

TIMEOUT_DIRECTIVES: list[Directive] = [
    ("max_execution_time", "Max Execution Time", "Maximum time a script can run (seconds)"),
    ("max_input_time", "Max Input Time", "Maximum time parsing request data (seconds)"),
    ("default_socket_timeout", "Socket Timeout", "Default timeout for socket streams (seconds)"),
]


def fpm_pool_paths(version: str) -> list[str]:
    """Candidate pool configs for PHP ``version``, most specific first."""
    return [
        f"/etc/php/{version}/fpm/pool.d/www.conf",
        "/etc/php-fpm.d/www.conf",
        f"/etc/php/{version}/fpm/php-fpm.conf",
    ]


class ExtensionsSectionProvider(SectionProvider):
    provider_type = SectionProviderType.EXTENSIONS
    owns = ("extensions", "available_extensions")

    async def load_data(self, app: ApplicationDefinition, state: ApplicationState, ctx: SessionContext) -> None:
        service = service_of(app, ctx, PHPService, self.provider_type)
        extensions = await service.extensions()
        if extensions is None:
            raise SectionProviderError.load_failed("Failed to get PHP extensions")
        state.extensions = extensions
        state.available_extensions = await service.available_extensions()


class DisabledFunctionsSectionProvider(SectionProvider):
    provider_type = SectionProviderType.DISABLED_FUNCTIONS
    owns = ("disabled_functions",)

    async def load_data(self, app: ApplicationDefinition, state: ApplicationState, ctx: SessionContext) -> None:
        service = service_of(app, ctx, PHPService, self.provider_type)
        state.disabled_functions = await service.disabled_functions()


class FPMProfileSectionProvider(SectionProvider):
    """Pool configuration of the active PHP version plus live pool status."""

    provider_type = SectionProviderType.FPM_PROFILE
    owns = ("fpm_profile_content", "fpm_status")

    async def load_data(self, app: ApplicationDefinition, state: ApplicationState, ctx: SessionContext) -> None:
        service = service_of(app, ctx, PHPService, self.provider_type)
        version = await service.active_version()

        state.fpm_profile_content = ""
        for path in fpm_pool_paths(version):
            result = await ctx.run(f"sudo cat {shell_quote(path)} 2>/dev/null")
            if succeeded(result) and is_nonempty(result.output):
                state.fpm_profile_content = result.output
                break

        state.fpm_status = await service.fpm_status()


class PHPInfoSectionProvider(SectionProvider):
    provider_type = SectionProviderType.PHPINFO
    owns = ("phpinfo_html", "phpinfo_data")

    async def load_data(self, app: ApplicationDefinition, state: ApplicationState, ctx: SessionContext) -> None:
        service = service_of(app, ctx, PHPService, self.provider_type)
        state.phpinfo_html = await service.phpinfo()
        state.phpinfo_data = parse_phpinfo(state.phpinfo_html)


class _IniSubsetProvider(SectionProvider):
    """Show a fixed subset of php.ini directives as config values."""

    owns = ("config_values",)
    directives: list[Directive] = []

    async def load_data(self, app: ApplicationDefinition, state: ApplicationState, ctx: SessionContext) -> None:
        service = service_of(app, ctx, PHPService, self.provider_type)
        version = await service.active_version()
        path = f"/etc/php/{version}/fpm/php.ini" if version else app.service_config.config_path

        result = await ctx.run(f"cat {shell_quote(path)} 2>/dev/null")
        state.config_values = [] if is_missing_file(result) else self.values_from(result.output)

    def values_from(self, content: str) -> list[ConfigValue]:
        return parse_directives(content, "ini", self.directives)


class UploadLimitsSectionProvider(_IniSubsetProvider):
    provider_type = SectionProviderType.UPLOAD_LIMITS
    directives = UPLOAD_DIRECTIVES


class TimeoutsSectionProvider(_IniSubsetProvider):
    provider_type = SectionProviderType.TIMEOUTS
    directives = TIMEOUT_DIRECTIVES
