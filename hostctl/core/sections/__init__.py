"""
Sections: the provider contract, the provider registry and the loader.

    from hostctl.core.sections import SectionLoader, provider_for
"""

from hostctl.core.sections.base import SectionProvider
from hostctl.core.sections.loader import SectionLoader
from hostctl.core.sections.registry import PROVIDERS, missing_providers, provider_for
from hostctl.core.services.formatting import format_uptime

__all__ = [
    "PROVIDERS",
    "SectionLoader",
    "SectionProvider",
    "format_uptime",
    "missing_providers",
    "provider_for",
]
