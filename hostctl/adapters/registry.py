"""
Executor registry: named executors plus a never-raising dispatch.

The CLI registers one executor per target (``local``, ``ssh``) and
resolves the active one by name. In mock mode every lookup returns the
mock so a whole command can be dry-run against scripted output.
"""

from __future__ import annotations

import logging
from typing import Any

from hostctl.adapters.base import DEFAULT_TIMEOUT, Executor
from hostctl.core.models.result import CommandResult

logger = logging.getLogger(__name__)


class ExecutorRegistry:
    """Central registry for executors.

    Features:
        - Register/unregister executors by name
        - Mock mode: swap every executor for a single mock
        - Dispatch a command through a named executor
        - Query executor availability
    """

    def __init__(self, mock_mode: bool = False):
        self._executors: dict[str, Executor] = {}
        self._mock_mode = mock_mode
        self._mock_executor: Executor | None = None

    @property
    def mock_mode(self) -> bool:
        return self._mock_mode

    def set_mock_mode(self, enabled: bool, mock_executor: Executor | None = None) -> None:
        """Enable or disable mock mode.

        Args:
            enabled: Whether to use mock mode.
            mock_executor: Executor returned for every lookup while enabled.
        """
        self._mock_mode = enabled
        self._mock_executor = mock_executor

    def register(self, executor: Executor) -> None:
        name = executor.name
        if name in self._executors:
            logger.warning("Overwriting existing executor: %s", name)
        self._executors[name] = executor
        logger.debug("Registered executor: %s", name)

    def unregister(self, name: str) -> None:
        self._executors.pop(name, None)

    def get(self, name: str) -> Executor | None:
        """Look up an executor by name (the mock, in mock mode)."""
        if self._mock_mode and self._mock_executor is not None:
            return self._mock_executor
        return self._executors.get(name)

    def list_executors(self) -> list[str]:
        return list(self._executors.keys())

    def executor_status(self) -> dict[str, dict[str, Any]]:
        """Get availability status of all registered executors."""
        status = {}
        for name, executor in self._executors.items():
            try:
                available = executor.is_available()
            except Exception:
                available = False
            status[name] = {
                "name": name,
                "available": available,
                "type": executor.__class__.__name__,
            }
        return status

    status = executor_status

    async def execute(
        self,
        name: str,
        command: str,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> CommandResult:
        """Run ``command`` through the named executor.

        Returns a CommandResult in every case; an unknown executor or an
        executor that broke its no-raise contract yields exit code -1.
        """
        executor = self.get(name)
        if executor is None:
            return CommandResult.connection_lost(command, f"No executor registered for '{name}'")

        try:
            return await executor.execute(command, timeout)
        except Exception as e:
            logger.error("Executor %s raised during execution: %s", name, e)
            return CommandResult.connection_lost(command, f"Unexpected error: {e}")
