"""
Provider registry: SectionProviderType → the provider instance serving it.

The table is closed and explicit. Every SectionProviderType member must
have an entry; ``missing_providers()`` reports gaps and the test suite
asserts it is empty.
"""

from __future__ import annotations

from typing import Mapping

from hostctl.core.errors import SectionProviderError
from hostctl.core.models.application import SectionProviderType
from hostctl.core.sections.base import SectionProvider
from hostctl.core.sections.common import (
    ConfigFileSectionProvider,
    ConfigurationSectionProvider,
    LogsSectionProvider,
    ServiceSectionProvider,
    StatusSectionProvider,
    VersionsSectionProvider,
)
from hostctl.core.sections.database import (
    BackupSectionProvider,
    DatabasesSectionProvider,
    UsersSectionProvider,
)
from hostctl.core.sections.php import (
    DisabledFunctionsSectionProvider,
    ExtensionsSectionProvider,
    FPMProfileSectionProvider,
    PHPInfoSectionProvider,
    TimeoutsSectionProvider,
    UploadLimitsSectionProvider,
)
from hostctl.core.sections.webserver import (
    ErrorPagesSectionProvider,
    ModulesSectionProvider,
    SecuritySectionProvider,
    SitesSectionProvider,
    WafStatsSectionProvider,
)

PROVIDERS: dict[SectionProviderType, SectionProvider] = {
    provider.provider_type: provider
    for provider in (
        # Common
        ServiceSectionProvider(),
        VersionsSectionProvider(),
        ConfigurationSectionProvider(),
        ConfigFileSectionProvider(),
        LogsSectionProvider(),
        StatusSectionProvider(),
        # Web servers
        ModulesSectionProvider(),
        SecuritySectionProvider(),
        WafStatsSectionProvider(),
        SitesSectionProvider(),
        ErrorPagesSectionProvider(),
        # PHP
        ExtensionsSectionProvider(),
        DisabledFunctionsSectionProvider(),
        FPMProfileSectionProvider(),
        PHPInfoSectionProvider(),
        UploadLimitsSectionProvider(),
        TimeoutsSectionProvider(),
        # Databases
        DatabasesSectionProvider(),
        UsersSectionProvider(),
        BackupSectionProvider(),
    )
}


def provider_for(
    provider_type: SectionProviderType | str,
    providers: Mapping[SectionProviderType, SectionProvider] | None = None,
) -> SectionProvider:
    """The provider serving ``provider_type``.

    Raises:
        SectionProviderError: not_supported, when nothing is registered.
    """
    table = PROVIDERS if providers is None else providers
    try:
        key = SectionProviderType(provider_type)
    except ValueError:
        raise SectionProviderError.not_supported(str(provider_type)) from None
    provider = table.get(key)
    if provider is None:
        raise SectionProviderError.not_supported(key)
    return provider


def missing_providers(
    providers: Mapping[SectionProviderType, SectionProvider] | None = None,
) -> list[SectionProviderType]:
    table = PROVIDERS if providers is None else providers
    return [member for member in SectionProviderType if member not in table]
