"""
Software detectors: is it installed, and what is its unit called?

Each detector runs a ProbeChain built from its table entry:

    1. binary on PATH            (which)
    2. unit active or enabled    (systemctl is-active || is-enabled)
    3. well-known binary paths   (ls)
    4. package database record   (dpkg -l / rpm -q, counted with wc -l)

and short-circuits on the first positive signal. Detection never
raises: any failure while probing is reported as not installed.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable

from hostctl.adapters.base import Executor
from hostctl.core.detection.probes import (
    Probe,
    ProbeChain,
    any_line_in,
    nonempty,
    nonzero_count,
)
from hostctl.core.models.software import DetectionResult, DetectionState, ServiceDescriptor
from hostctl.core.services import versioning
from hostctl.core.services.systemd import SystemdHelper

logger = logging.getLogger(__name__)

VERSION_TIMEOUT = 10.0


@dataclass
class SoftwareDetector:
    """Probe-chain detector for one piece of software."""

    software_id: str
    which: str                                   # e.g. "which nginx"
    service_candidates: list[str] = field(default_factory=list)
    paths: list[str] = field(default_factory=list)
    package_probes: list[Probe] = field(default_factory=list)
    service_probe: Probe | None = None           # replaces the default unit probe
    version_command: str = ""
    version_parser: Callable[[str], str] = versioning.first_version
    flavor_marker: str = ""                      # substring marking an alternate flavor

    @property
    def chain(self) -> ProbeChain:
        probes = [Probe(f"{self.which} 2>/dev/null", nonempty, "binary")]

        if self.service_probe is not None:
            probes.append(self.service_probe)
        elif self.service_candidates:
            unit = self.service_candidates[0]
            probes.append(Probe(
                f"systemctl is-active {unit} 2>/dev/null || "
                f"systemctl is-enabled {unit} 2>/dev/null",
                any_line_in("active", "enabled"),
                "service",
            ))

        if self.paths:
            probes.append(Probe(f"ls {' '.join(self.paths)} 2>/dev/null", nonempty, "path"))

        probes.extend(self.package_probes)
        return ProbeChain(probes)

    async def detect(self, executor: Executor) -> DetectionResult:
        """Run the chain; resolve the unit name when something was found."""
        try:
            outcome = await self.chain.run(executor)
            if not outcome.found:
                return DetectionResult(
                    software_id=self.software_id,
                    state=DetectionState.NOT_INSTALLED,
                )
            descriptor = await self.resolve_service(executor)
        except Exception as e:
            logger.warning("Detection of %s failed, reporting not installed: %s", self.software_id, e)
            return DetectionResult(software_id=self.software_id, state=DetectionState.NOT_INSTALLED)

        return DetectionResult(
            software_id=self.software_id,
            state=DetectionState.INSTALLED,
            descriptor=descriptor,
            matched_probe=outcome.label,
        )

    async def resolve_service(self, executor: Executor) -> ServiceDescriptor:
        """First candidate unit systemd knows about, else the first candidate."""
        helper = SystemdHelper(executor)
        canonical = self.service_candidates[0] if self.service_candidates else self.software_id
        for candidate in self.service_candidates:
            if await helper.service_exists(candidate):
                canonical = candidate
                break

        alternate = False
        if self.flavor_marker and self.version_command:
            result = await executor.execute(self.version_command, VERSION_TIMEOUT)
            alternate = self.flavor_marker in result.output.lower()

        return ServiceDescriptor(canonical_name=canonical, is_alternate_flavor=alternate)

    async def get_version(self, executor: Executor) -> str:
        if not self.version_command:
            return ""
        result = await executor.execute(self.version_command, VERSION_TIMEOUT)
        return self.version_parser(result.output.strip())


async def detect_all(
    detectors: Iterable[SoftwareDetector],
    executor: Executor,
) -> dict[str, DetectionResult]:
    """Detect several packages concurrently, keyed by software id."""
    detectors = list(detectors)
    results = await asyncio.gather(*(d.detect(executor) for d in detectors))
    return {d.software_id: r for d, r in zip(detectors, results)}


# ── Built-in table ──────────────────────────────────────────────


def _dpkg(pattern: str) -> Probe:
    return Probe(f"dpkg -l 2>/dev/null | grep -E '{pattern}' | wc -l", nonzero_count, "dpkg")


def _rpm(pattern: str) -> Probe:
    return Probe(f"rpm -qa 2>/dev/null | grep -E '{pattern}' | wc -l", nonzero_count, "rpm")


def builtin_detectors() -> dict[str, SoftwareDetector]:
    """Fresh detectors for every software hostctl knows how to manage."""
    detectors = [
        SoftwareDetector(
            software_id="mysql",
            which="which mysql",
            service_candidates=["mysql", "mariadb", "mysqld"],
            paths=["/usr/bin/mysql", "/usr/local/bin/mysql"],
            package_probes=[
                _dpkg(r"^ii\s+(mysql-server|mariadb-server)"),
                _rpm(r"(mysql-server|mariadb-server)"),
            ],
            version_command="mysql --version 2>&1 | head -1",
            version_parser=versioning.parse_mysql_version,
            flavor_marker="mariadb",
        ),
        SoftwareDetector(
            software_id="postgresql",
            which="which psql",
            service_candidates=["postgresql"],
            service_probe=Probe("which pg_ctl 2>/dev/null || which postgres 2>/dev/null", nonempty, "server"),
            package_probes=[
                _dpkg(r"^ii\s+postgresql"),
                _rpm(r"postgresql[0-9]*-server"),
            ],
            version_command="psql --version 2>/dev/null | head -1",
            version_parser=versioning.parse_postgres_version,
        ),
        SoftwareDetector(
            software_id="redis",
            which="which redis-server",
            service_candidates=["redis-server", "redis"],
            paths=["/usr/bin/redis-server", "/usr/local/bin/redis-server"],
            package_probes=[_dpkg(r"^ii\s+redis-server"), _rpm(r"^redis")],
            version_command="redis-server --version 2>/dev/null",
            version_parser=versioning.parse_redis_version,
        ),
        SoftwareDetector(
            software_id="nginx",
            which="which nginx",
            service_candidates=["nginx"],
            paths=["/usr/sbin/nginx", "/usr/local/bin/nginx", "/usr/bin/nginx"],
            package_probes=[
                Probe("dpkg -l nginx 2>/dev/null | grep -E '^ii' | wc -l", nonzero_count, "dpkg"),
                Probe("rpm -q nginx 2>/dev/null | grep -v 'not installed' | wc -l", nonzero_count, "rpm"),
            ],
            version_command="nginx -v 2>&1 | head -1",
            version_parser=versioning.parse_nginx_version,
        ),
        SoftwareDetector(
            software_id="apache",
            which="which apache2 2>/dev/null || which httpd",
            service_candidates=["apache2", "httpd"],
            paths=["/usr/sbin/apache2", "/usr/sbin/httpd", "/usr/bin/apache2", "/usr/bin/httpd"],
            package_probes=[
                Probe("dpkg -l apache2 2>/dev/null | grep -E '^ii' | wc -l", nonzero_count, "dpkg"),
                Probe("rpm -q httpd 2>/dev/null | grep -v 'not installed' | wc -l", nonzero_count, "rpm"),
            ],
            version_command="(apache2 -v || httpd -v) 2>&1 | head -1",
            version_parser=versioning.parse_apache_version,
        ),
        SoftwareDetector(
            software_id="php",
            which="which php",
            service_candidates=[
                "php-fpm", "php8.3-fpm", "php8.2-fpm", "php8.1-fpm", "php8.0-fpm", "php7.4-fpm",
            ],
            service_probe=Probe(
                "systemctl list-units --type=service --all 2>/dev/null "
                "| grep -E 'php.*fpm' | grep -v 'not-found' | wc -l",
                nonzero_count,
                "service",
            ),
            paths=["/usr/bin/php", "/usr/local/bin/php"],
            package_probes=[_dpkg(r"^ii\s+php[0-9]"), _rpm(r"^php[0-9]")],
            version_command="php -v 2>/dev/null | head -1 | awk '{print $2}'",
        ),
        SoftwareDetector(
            software_id="mongodb",
            which="which mongod",
            service_candidates=["mongod", "mongodb"],
            paths=["/usr/bin/mongod", "/usr/local/bin/mongod"],
            package_probes=[_dpkg(r"^ii\s+mongodb"), _rpm(r"^mongodb")],
            version_command="mongod --version 2>/dev/null | head -1",
            version_parser=versioning.parse_mongodb_version,
        ),
        SoftwareDetector(
            software_id="python",
            which="which python3",
            version_command="python3 --version 2>&1 | awk '{print $2}'",
        ),
        SoftwareDetector(
            software_id="node",
            which="which node",
            version_command="node --version 2>&1 | sed 's/v//'",
        ),
    ]
    return {d.software_id: d for d in detectors}
