"""
ServiceResolver: application id → SoftwareService for one session.

Services are built lazily on first request and reused afterwards, all
sharing the session's executor and detection cache.
"""

from __future__ import annotations

import logging
from typing import Mapping, Sequence

from hostctl.adapters.base import DEFAULT_TIMEOUT, Executor
from hostctl.core.detection.cache import DescriptorCache
from hostctl.core.detection.detectors import SoftwareDetector, builtin_detectors
from hostctl.core.models.application import canonical_app_id
from hostctl.core.services.apache import ApacheService
from hostctl.core.services.base import INSTALL_TIMEOUT, SoftwareService
from hostctl.core.services.mongodb import MongoDBService
from hostctl.core.services.mysql import MySQLService
from hostctl.core.services.nginx import NginxService
from hostctl.core.services.php import PHPService
from hostctl.core.services.postgresql import PostgreSQLService
from hostctl.core.services.redis import RedisService
from hostctl.core.services.runtimes import NodeService, PythonService

logger = logging.getLogger(__name__)

SERVICE_CLASSES: dict[str, type[SoftwareService]] = {
    "nginx": NginxService,
    "apache": ApacheService,
    "php": PHPService,
    "mysql": MySQLService,
    "postgresql": PostgreSQLService,
    "redis": RedisService,
    "mongodb": MongoDBService,
    "python": PythonService,
    "node": NodeService,
}


class ServiceResolver:

    def __init__(
        self,
        executor: Executor,
        *,
        cache: DescriptorCache | None = None,
        session_id: str = "local",
        detectors: Mapping[str, SoftwareDetector] | None = None,
        packages: Mapping[str, Sequence[str]] | None = None,
        command_timeout: float = DEFAULT_TIMEOUT,
        install_timeout: float = INSTALL_TIMEOUT,
    ):
        self.executor = executor
        self.cache = cache if cache is not None else DescriptorCache()
        self.session_id = session_id
        self.detectors = dict(detectors) if detectors is not None else builtin_detectors()
        self.packages = dict(packages or {})
        self.command_timeout = command_timeout
        self.install_timeout = install_timeout
        self._services: dict[str, SoftwareService] = {}

    def resolve(self, app_id: str) -> SoftwareService | None:
        """The service for ``app_id`` (aliases accepted), or None if unknown."""
        key = canonical_app_id(app_id)
        if key in self._services:
            return self._services[key]

        cls = SERVICE_CLASSES.get(key)
        detector = self.detectors.get(key)
        if cls is None or detector is None:
            logger.debug("No service registered for application id %r", app_id)
            return None

        service = cls(
            self.executor,
            detector,
            packages=self.packages.get(key, ()),
            cache=self.cache,
            session_id=self.session_id,
            command_timeout=self.command_timeout,
            install_timeout=self.install_timeout,
        )
        self._services[key] = service
        return service

    def known_ids(self) -> list[str]:
        return sorted(k for k in SERVICE_CLASSES if k in self.detectors)
