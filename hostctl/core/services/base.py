"""
SoftwareService: the uniform capability surface shared by every software.

A service composes the pieces below it instead of re-implementing them:

    detector        → is_installed, unit name, version
    command builder → install / remove
    systemd helper  → is_running, start/stop/restart/reload/enable/disable

Subclasses add domain operations (databases, users, config) and parse
their output with pure module-level functions.
"""

from __future__ import annotations

import logging
from typing import Sequence

from hostctl.adapters.base import DEFAULT_TIMEOUT, Executor
from hostctl.core.commands.package_manager import (
    PackageManagerKind,
    install_command,
    remove_command,
)
from hostctl.core.detection.cache import DescriptorCache
from hostctl.core.detection.detectors import SoftwareDetector
from hostctl.core.errors import classify
from hostctl.core.models.result import CommandResult, OperationResult
from hostctl.core.models.software import DetectionResult, SoftwareStatus
from hostctl.core.services.systemd import ServiceAction, SystemdHelper

logger = logging.getLogger(__name__)

INSTALL_TIMEOUT = 600.0


class SoftwareService:
    """Base class for per-software services.

    ``has_unit`` is False for runtimes that have no long-lived process;
    their status is ``installed`` rather than running/stopped.
    """

    has_unit: bool = True

    def __init__(
        self,
        executor: Executor,
        detector: SoftwareDetector,
        *,
        packages: Sequence[str] = (),
        cache: DescriptorCache | None = None,
        session_id: str = "local",
        command_timeout: float = DEFAULT_TIMEOUT,
        install_timeout: float = INSTALL_TIMEOUT,
    ):
        self.executor = executor
        self.detector = detector
        self.packages = list(packages)
        self.cache = cache if cache is not None else DescriptorCache()
        self.session_id = session_id
        self.command_timeout = command_timeout
        self.install_timeout = install_timeout
        self.systemd = SystemdHelper(executor)

    @property
    def software_id(self) -> str:
        return self.detector.software_id

    async def run(self, command: str, timeout: float | None = None) -> CommandResult:
        return await self.executor.execute(command, timeout or self.command_timeout)

    # ── Detection ───────────────────────────────────────────────

    async def detection(self) -> DetectionResult:
        """Cached detection result for this session."""
        cached = self.cache.get(self.software_id, self.session_id)
        if cached is not None:
            return cached
        result = await self.detector.detect(self.executor)
        self.cache.put(self.session_id, result)
        return result

    async def service_name(self) -> str:
        result = await self.detection()
        if result.descriptor is not None:
            return result.descriptor.canonical_name
        if self.detector.service_candidates:
            return self.detector.service_candidates[0]
        return self.software_id

    async def is_installed(self) -> bool:
        return (await self.detection()).installed

    async def get_version(self) -> str:
        return await self.detector.get_version(self.executor)

    async def is_running(self) -> bool:
        if not self.has_unit:
            return False
        return await self.systemd.is_active(await self.service_name())

    async def get_status(self) -> SoftwareStatus:
        if not await self.is_installed():
            return SoftwareStatus.not_installed()
        version = await self.get_version() or "installed"
        if not self.has_unit:
            return SoftwareStatus.installed(version)
        if await self.is_running():
            return SoftwareStatus.running(version)
        return SoftwareStatus.stopped(version)

    # ── Control ─────────────────────────────────────────────────

    async def control(self, action: ServiceAction | str) -> bool:
        if not self.has_unit:
            logger.info("%s has no service unit; ignoring %s", self.software_id, action)
            return False
        return await self.systemd.execute_action(action, await self.service_name())

    async def start(self) -> bool:
        return await self.control(ServiceAction.START)

    async def stop(self) -> bool:
        return await self.control(ServiceAction.STOP)

    async def restart(self) -> bool:
        return await self.control(ServiceAction.RESTART)

    async def reload(self) -> bool:
        return await self.control(ServiceAction.RELOAD)

    async def enable(self) -> bool:
        return await self.control(ServiceAction.ENABLE)

    async def disable(self) -> bool:
        return await self.control(ServiceAction.DISABLE)

    # ── Packages ────────────────────────────────────────────────

    async def install(
        self,
        kind: PackageManagerKind,
        with_update: bool = True,
        packages: Sequence[str] | None = None,
    ) -> OperationResult:
        """Install ``packages`` (default: this software's). No rollback on failure."""
        packages = list(self.packages if packages is None else packages)
        command = install_command(packages, kind, with_update)
        if not command:
            return OperationResult.failure(f"No packages defined for {self.software_id}")

        logger.info("Installing %s with %s: %s", self.software_id, kind, " ".join(packages))
        result = await self.run(command, self.install_timeout)
        self.cache.invalidate(self.session_id, self.software_id)
        failure = classify(result)
        if failure is not None:
            return OperationResult.failure(
                f"Installation of {self.software_id} failed: {failure}",
                output=result.output[-2000:],
            )
        return OperationResult.success(f"{self.software_id} installed", command=command)

    async def remove(
        self,
        kind: PackageManagerKind,
        purge: bool = False,
        packages: Sequence[str] | None = None,
    ) -> OperationResult:
        packages = list(self.packages if packages is None else packages)
        command = remove_command(packages, kind, purge)
        if not command:
            return OperationResult.failure(f"No packages defined for {self.software_id}")

        result = await self.run(command, self.install_timeout)
        self.cache.invalidate(self.session_id, self.software_id)
        failure = classify(result)
        if failure is not None:
            return OperationResult.failure(
                f"Removal of {self.software_id} failed: {failure}",
                output=result.output[-2000:],
            )
        return OperationResult.success(f"{self.software_id} removed")

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} software_id={self.software_id!r}>"
