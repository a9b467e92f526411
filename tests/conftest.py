"""
Shared test fixtures and configuration.
"""

import pytest

from hostctl.adapters.mock import MockExecutor
from hostctl.core.config.loader import ApplicationRegistry, Settings
from hostctl.core.context import SessionContext


@pytest.fixture(scope="session")
def apps() -> ApplicationRegistry:
    """The bundled application definitions."""
    return ApplicationRegistry.load()


@pytest.fixture
def mock() -> MockExecutor:
    """A host where every unscripted command succeeds with no output."""
    return MockExecutor()


@pytest.fixture
def ctx(mock: MockExecutor, apps: ApplicationRegistry) -> SessionContext:
    """Session over the mock host, with no settle delay."""
    return SessionContext.create(mock, settings=Settings(settle_delay=0), apps=apps)
