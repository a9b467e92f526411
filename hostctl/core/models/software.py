"""
Software models: detection outcomes and the tri-state service status.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict


class DetectionState(StrEnum):
    UNKNOWN = "unknown"
    PROBING = "probing"
    INSTALLED = "installed"
    NOT_INSTALLED = "not_installed"


class ServiceDescriptor(BaseModel):
    """Resolved unit name for a piece of software on one host.

    ``is_alternate_flavor`` marks a drop-in fork answering to the same
    software id (MariaDB standing in for MySQL).
    """

    model_config = ConfigDict(frozen=True)

    canonical_name: str
    is_alternate_flavor: bool = False


class DetectionResult(BaseModel):
    """Outcome of running a detector's probe chain."""

    model_config = ConfigDict(frozen=True)

    software_id: str
    state: DetectionState = DetectionState.UNKNOWN
    descriptor: ServiceDescriptor | None = None
    matched_probe: str = ""     # label of the probe that fired, if any

    @property
    def installed(self) -> bool:
        return self.state == DetectionState.INSTALLED


class SoftwareStatusKind(StrEnum):
    NOT_INSTALLED = "not_installed"
    RUNNING = "running"
    STOPPED = "stopped"
    INSTALLED = "installed"     # runtimes without a unit to run


class SoftwareStatus(BaseModel):
    """Installed/running/stopped tri-state, with version when installed.

    Runtimes with no long-lived process (python, node) report
    ``installed`` instead of running or stopped.
    """

    model_config = ConfigDict(frozen=True)

    kind: SoftwareStatusKind
    version: str = ""

    @classmethod
    def not_installed(cls) -> SoftwareStatus:
        return cls(kind=SoftwareStatusKind.NOT_INSTALLED)

    @classmethod
    def running(cls, version: str) -> SoftwareStatus:
        return cls(kind=SoftwareStatusKind.RUNNING, version=version)

    @classmethod
    def stopped(cls, version: str) -> SoftwareStatus:
        return cls(kind=SoftwareStatusKind.STOPPED, version=version)

    @classmethod
    def installed(cls, version: str) -> SoftwareStatus:
        return cls(kind=SoftwareStatusKind.INSTALLED, version=version)

    @property
    def is_installed(self) -> bool:
        return self.kind != SoftwareStatusKind.NOT_INSTALLED

    @property
    def is_running(self) -> bool:
        return self.kind == SoftwareStatusKind.RUNNING

    def __str__(self) -> str:
        if self.kind == SoftwareStatusKind.NOT_INSTALLED:
            return "not installed"
        return f"{self.kind.value} ({self.version})"
