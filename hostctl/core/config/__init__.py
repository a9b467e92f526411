"""Configuration: bundled application definitions and runtime settings."""

from hostctl.core.config.loader import (
    APPLICATIONS_FILE,
    ApplicationRegistry,
    ConfigError,
    Settings,
    load_applications,
    load_settings,
)

__all__ = [
    "APPLICATIONS_FILE",
    "ApplicationRegistry",
    "ConfigError",
    "Settings",
    "load_applications",
    "load_settings",
]
