"""
SectionProvider base: the contract between the loader and one section kind.

A provider loads one administrative section's data for an application
and writes it into an ApplicationState. Providers fail two ways, and
both are kept distinct:

    1. raise SectionProviderError when the section cannot be served at
       all for this application (no backend, wrong application);
    2. leave the fields at their defaults (optionally with a message)
       when a remote probe returned nothing parseable.

To add a section kind:
    1. Add a member to SectionProviderType
    2. Subclass SectionProvider, set provider_type and owns
    3. Register the instance in hostctl.core.sections.registry
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, TypeVar

from hostctl.core.errors import SectionProviderError
from hostctl.core.models.application import ApplicationDefinition, SectionProviderType
from hostctl.core.models.state import ApplicationState
from hostctl.core.services.base import SoftwareService

if TYPE_CHECKING:
    from hostctl.core.context import SessionContext

S = TypeVar("S", bound=SoftwareService)


class SectionProvider(ABC):
    """Abstract base class for section providers.

    ``owns`` names the ApplicationState fields this provider writes.
    The loader copies exactly those fields (plus the banner messages)
    from the provider's scratch state into the live one.
    """

    provider_type: SectionProviderType
    owns: tuple[str, ...] = ()

    @abstractmethod
    async def load_data(
        self,
        app: ApplicationDefinition,
        state: ApplicationState,
        ctx: SessionContext,
    ) -> None:
        """Populate ``state`` for ``app``.

        Raises:
            SectionProviderError: If the section cannot be served.
        """

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} type={self.provider_type.value!r}>"


# ── Helpers shared by providers ─────────────────────────────────


def require_service(app: ApplicationDefinition, ctx: SessionContext) -> SoftwareService:
    """The service backing ``app``, or raise service_not_found."""
    service = ctx.resolver.resolve(app.id)
    if service is None:
        raise SectionProviderError.service_not_found(app.id)
    return service


def service_of(
    app: ApplicationDefinition,
    ctx: SessionContext,
    cls: type[S],
    provider_type: SectionProviderType,
) -> S:
    """The backing service when it is a ``cls``, otherwise not_supported."""
    service = require_service(app, ctx)
    if not isinstance(service, cls):
        raise SectionProviderError.not_supported(provider_type)
    return service
