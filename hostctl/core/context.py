"""
Session context: everything a section provider needs for one host session.

A SessionContext is built ONCE per open session by whichever entry
point owns the connection and passed explicitly to providers, use
cases and the section loader:

    - CLI:    main.py → SessionContext.create(executor, settings=...)
    - Tests:  conftest → SessionContext.create(MockExecutor())

Nothing here is a module-level singleton; two sessions to two hosts
hold two contexts sharing nothing but the static application registry.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field

from hostctl.adapters.base import Executor
from hostctl.core.config.loader import ApplicationRegistry, Settings
from hostctl.core.detection.cache import DescriptorCache
from hostctl.core.detection.detectors import SoftwareDetector, builtin_detectors
from hostctl.core.models.application import canonical_app_id
from hostctl.core.models.result import CommandResult
from hostctl.core.models.software import DetectionResult, DetectionState
from hostctl.core.services.resolver import ServiceResolver
from hostctl.core.services.systemd import SystemdHelper

logger = logging.getLogger(__name__)


@dataclass
class SessionContext:
    """Explicit dependency bundle for one host session."""

    executor: Executor
    apps: ApplicationRegistry
    settings: Settings = field(default_factory=Settings)
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    cache: DescriptorCache = field(default_factory=DescriptorCache)
    detectors: dict[str, SoftwareDetector] = field(default_factory=builtin_detectors)
    resolver: ServiceResolver = field(init=False)
    systemd: SystemdHelper = field(init=False)

    def __post_init__(self) -> None:
        self.systemd = SystemdHelper(self.executor)
        self.resolver = ServiceResolver(
            self.executor,
            cache=self.cache,
            session_id=self.session_id,
            detectors=self.detectors,
            packages={app.id: app.packages for app in self.apps.all()},
            command_timeout=self.settings.command_timeout,
            install_timeout=self.settings.install_timeout,
        )

    @classmethod
    def create(
        cls,
        executor: Executor,
        *,
        settings: Settings | None = None,
        apps: ApplicationRegistry | None = None,
        session_id: str | None = None,
    ) -> SessionContext:
        """Build a context, loading the application definitions if not given.

        Raises:
            ConfigError: If the definitions file is missing or invalid.
        """
        settings = settings or Settings()
        if apps is None:
            apps = ApplicationRegistry.load(settings.apps_file)
        kwargs = {"session_id": session_id} if session_id else {}
        ctx = cls(executor=executor, apps=apps, settings=settings, **kwargs)
        logger.debug("Opened session %s on %s executor", ctx.session_id, executor.name)
        return ctx

    async def run(self, command: str, timeout: float | None = None) -> CommandResult:
        """Run one command with the session's default timeout."""
        return await self.executor.execute(command, timeout or self.settings.command_timeout)

    async def detect(self, software_id: str) -> DetectionResult:
        """Cached detection for one software id (aliases accepted)."""
        key = canonical_app_id(software_id)
        cached = self.cache.get(key, self.session_id)
        if cached is not None:
            return cached

        detector = self.detectors.get(key)
        if detector is None:
            logger.debug("No detector for %r", software_id)
            return DetectionResult(software_id=key, state=DetectionState.NOT_INSTALLED)

        result = await detector.detect(self.executor)
        self.cache.put(self.session_id, result)
        return result

    def close(self) -> None:
        """Drop everything cached for this session."""
        self.cache.invalidate(self.session_id)
