"""
Install use case: put an application's packages on a host.

Ties together OS detection, the package-manager command builder, the
per-software service and re-detection:

    1. read /etc/os-release (unless an OS id is given)
    2. build and run the install command with the install timeout
    3. sleep the settle delay so the unit can come up
    4. invalidate the detection cache and re-detect

A failed install can leave packages half-installed. Nothing is rolled
back; the lifecycle is set to ``broken`` with the reason instead.
"""

from __future__ import annotations

import asyncio
import logging

from hostctl.core.commands.package_manager import (
    OS_RELEASE_COMMAND,
    PackageManagerKind,
    detect,
    os_id_from_release,
)
from hostctl.core.context import SessionContext
from hostctl.core.models.application import ApplicationDefinition
from hostctl.core.models.result import OperationResult
from hostctl.core.models.state import ApplicationState, LifecycleKind, LifecycleState

logger = logging.getLogger(__name__)


async def resolve_package_manager(ctx: SessionContext, os_id: str | None = None) -> PackageManagerKind:
    """Package manager for ``os_id``, reading /etc/os-release when not given."""
    if os_id is None:
        result = await ctx.run(OS_RELEASE_COMMAND)
        os_id = os_id_from_release(result.output)
        logger.debug("Host OS id from os-release: %r", os_id)
    return detect(os_id)


async def install_application(
    ctx: SessionContext,
    app: ApplicationDefinition,
    os_id: str | None = None,
    state: ApplicationState | None = None,
) -> OperationResult:
    """Install ``app`` on the session's host.

    Args:
        ctx: Session context.
        app: Application to install.
        os_id: OS id (``ubuntu``, ``fedora``...). Read from the host if None.
        state: Optional state whose lifecycle tracks the install.

    Returns:
        OperationResult; on success ``data`` carries the detected
        ``status`` and ``version``.
    """
    service = ctx.resolver.resolve(app.id)
    if service is None:
        return OperationResult.failure(f"No service available for {app.name}")

    kind = await resolve_package_manager(ctx, os_id)
    packages = app.packages_for(kind)
    if state is not None:
        state.lifecycle = LifecycleState(
            kind=LifecycleKind.INSTALLING, progress=0.1, phase=f"Installing {' '.join(packages)}",
        )
        state.install_status = f"Installing {app.name} with {kind}"

    result = await service.install(kind, packages=packages)
    if not result.ok:
        logger.warning("Install of %s failed: %s", app.id, result.message)
        if state is not None:
            state.lifecycle = LifecycleState(kind=LifecycleKind.BROKEN, reason=result.message)
            state.install_status = result.message
        return result

    if state is not None:
        state.lifecycle = LifecycleState(kind=LifecycleKind.INSTALLING, progress=0.9, phase="Verifying")
    await asyncio.sleep(ctx.settings.settle_delay)

    ctx.cache.invalidate(ctx.session_id, service.software_id)
    status = await service.get_status()
    if state is not None:
        state.lifecycle = LifecycleState.from_status(status)
        state.install_status = ""

    if not status.is_installed:
        return OperationResult.failure(
            f"{app.name} packages installed but the software was not detected",
            package_manager=str(kind),
        )

    logger.info("Installed %s (%s)", app.id, status)
    return OperationResult.success(
        f"{app.name} installed",
        package_manager=str(kind),
        status=status.kind.value,
        version=status.version,
    )


async def remove_application(
    ctx: SessionContext,
    app: ApplicationDefinition,
    os_id: str | None = None,
    purge: bool = False,
) -> OperationResult:
    service = ctx.resolver.resolve(app.id)
    if service is None:
        return OperationResult.failure(f"No service available for {app.name}")

    kind = await resolve_package_manager(ctx, os_id)
    result = await service.remove(kind, purge=purge, packages=app.packages_for(kind))
    ctx.cache.invalidate(ctx.session_id, service.software_id)
    return result
