"""
Domain models: Pydantic types for the administration core.

All models are re-exported here for convenient access:

    from hostctl.core.models import CommandResult, ApplicationDefinition, ApplicationState
"""

from hostctl.core.models.application import (
    ApplicationCategory,
    ApplicationDefinition,
    Capability,
    SectionDefinition,
    SectionProviderType,
    ServiceConfiguration,
)
from hostctl.core.models.result import CommandResult, OperationResult
from hostctl.core.models.software import (
    DetectionResult,
    DetectionState,
    ServiceDescriptor,
    SoftwareStatus,
    SoftwareStatusKind,
)
from hostctl.core.models.state import (
    ApplicationState,
    ConfigValue,
    DatabaseInfo,
    DatabaseUser,
    FPMStatus,
    LifecycleKind,
    LifecycleState,
    MySQLStatus,
    NginxStatus,
    PHPExtension,
    SecurityStats,
    SiteInfo,
    WafLogEntry,
)

__all__ = [
    # application.py
    "ApplicationCategory",
    "ApplicationDefinition",
    "Capability",
    "SectionDefinition",
    "SectionProviderType",
    "ServiceConfiguration",
    # result.py
    "CommandResult",
    "OperationResult",
    # software.py
    "DetectionResult",
    "DetectionState",
    "ServiceDescriptor",
    "SoftwareStatus",
    "SoftwareStatusKind",
    # state.py
    "ApplicationState",
    "ConfigValue",
    "DatabaseInfo",
    "DatabaseUser",
    "FPMStatus",
    "LifecycleKind",
    "LifecycleState",
    "MySQLStatus",
    "NginxStatus",
    "PHPExtension",
    "SecurityStats",
    "SiteInfo",
    "WafLogEntry",
]
