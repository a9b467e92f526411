"""
Configuration loader: reads applications.yml and runtime settings.

Application definitions ship with the package as YAML. They are
validated against the Pydantic models in ``hostctl.core.models`` and
served from an ApplicationRegistry. Runtime knobs (timeouts, delays)
come from ``HOSTCTL_*`` environment variables.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Mapping

import yaml
from pydantic import BaseModel

from hostctl.core.models.application import (
    ApplicationCategory,
    ApplicationDefinition,
    canonical_app_id,
)

logger = logging.getLogger(__name__)

APPLICATIONS_FILE = Path(__file__).with_name("applications.yml")
APPS_FILE_ENV = "HOSTCTL_APPS_FILE"


class ConfigError(Exception):
    """Raised when a definitions file or setting is invalid or missing."""


# ── Settings ────────────────────────────────────────────────────


class Settings(BaseModel):
    """Runtime knobs. Durations are seconds."""

    command_timeout: float = 30.0
    install_timeout: float = 600.0
    settle_delay: float = 2.0
    apps_file: Path | None = None


_SETTINGS_ENV: dict[str, str] = {
    "command_timeout": "HOSTCTL_COMMAND_TIMEOUT",
    "install_timeout": "HOSTCTL_INSTALL_TIMEOUT",
    "settle_delay": "HOSTCTL_SETTLE_DELAY",
    "apps_file": APPS_FILE_ENV,
}


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build Settings from ``HOSTCTL_*`` variables, defaults for the rest.

    Raises:
        ConfigError: If a variable is set to an unparsable value.
    """
    env = os.environ if environ is None else environ
    values = {
        field: env[var]
        for field, var in _SETTINGS_ENV.items()
        if env.get(var)
    }
    try:
        return Settings.model_validate(values)
    except Exception as e:
        raise ConfigError(f"Invalid HOSTCTL_* setting: {e}") from e


# ── Application definitions ─────────────────────────────────────


def load_applications(path: Path | None = None) -> list[ApplicationDefinition]:
    """Load and validate application definitions.

    Args:
        path: Definitions file. Defaults to the bundled applications.yml.

    Returns:
        Validated definitions, in file order.

    Raises:
        ConfigError: If the file is missing, unreadable, or invalid.
    """
    path = path or APPLICATIONS_FILE
    if not path.is_file():
        raise ConfigError(f"Definitions file not found: {path}")

    logger.debug("Loading application definitions from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get("applications"), list):
        raise ConfigError(f"Expected an 'applications' list in {path}")

    apps: list[ApplicationDefinition] = []
    for index, entry in enumerate(data["applications"]):
        try:
            apps.append(ApplicationDefinition.model_validate(entry))
        except Exception as e:
            raise ConfigError(f"Invalid application #{index} in {path}: {e}") from e

    logger.info("Loaded %d application definitions", len(apps))
    return apps


class ApplicationRegistry:
    """Read-only lookup over loaded application definitions."""

    def __init__(self, apps: list[ApplicationDefinition]):
        self._apps: dict[str, ApplicationDefinition] = {}
        for app in apps:
            key = app.id.lower()
            if key in self._apps:
                raise ConfigError(f"Duplicate application id: {app.id}")
            self._apps[key] = app

    @classmethod
    def load(cls, path: Path | None = None) -> ApplicationRegistry:
        return cls(load_applications(path))

    def get(self, app_id: str) -> ApplicationDefinition | None:
        """Look up by id (case-insensitive), falling back to slug."""
        key = app_id.strip().lower()
        if key in self._apps:
            return self._apps[key]
        for app in self._apps.values():
            if app.slug.lower() == key:
                return app
        return None

    def application_for_software(self, software: str) -> ApplicationDefinition | None:
        """Map a package/unit name (``httpd``, ``mariadb``...) onto its application."""
        key = software.strip().lower()
        app = self.get(canonical_app_id(key))
        if app is not None:
            return app
        for candidate in self._apps.values():
            if candidate.service_config.service_name.lower() == key:
                return candidate
        return None

    def all(self) -> list[ApplicationDefinition]:
        return sorted(self._apps.values(), key=lambda a: a.name.lower())

    def by_category(self, category: ApplicationCategory | str) -> list[ApplicationDefinition]:
        wanted = ApplicationCategory(category)
        return [app for app in self.all() if app.category == wanted]

    def __len__(self) -> int:
        return len(self._apps)

    def __contains__(self, app_id: str) -> bool:
        return self.get(app_id) is not None
