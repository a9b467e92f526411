"""
Mock executor: universal test double for every remote command.

Used in tests (and ``--mock`` runs) to simulate a host without touching
one. Responses are scripted by substring or regex; the first matching
rule wins, anything unmatched gets the default response.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass

from hostctl.adapters.base import DEFAULT_TIMEOUT, Executor
from hostctl.core.models.result import CommandResult


@dataclass
class _Rule:
    pattern: str
    output: str
    exit_code: int
    delay: float
    regex: bool

    def matches(self, command: str) -> bool:
        if self.regex:
            return re.search(self.pattern, command) is not None
        return self.pattern in command


@dataclass
class CallRecord:
    command: str
    timeout: float


class MockExecutor(Executor):
    """Scriptable executor for testing.

    By default, every command succeeds with empty output. Can be
    configured with custom responses per command pattern.
    """

    def __init__(
        self,
        executor_name: str = "mock",
        available: bool = True,
        default_output: str = "",
        default_exit_code: int = 0,
    ):
        self._name = executor_name
        self._available = available
        self._default_output = default_output
        self._default_exit_code = default_exit_code
        self._rules: list[_Rule] = []
        self._call_log: list[CallRecord] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_log(self) -> list[CallRecord]:
        """Every command this mock has received, in issue order."""
        return self._call_log

    @property
    def call_count(self) -> int:
        """Number of times execute has been called."""
        return len(self._call_log)

    @property
    def commands(self) -> list[str]:
        return [call.command for call in self._call_log]

    def is_available(self) -> bool:
        return self._available

    def set_response(
        self,
        pattern: str,
        output: str = "",
        exit_code: int = 0,
        delay: float = 0.0,
        regex: bool = False,
    ) -> None:
        """Answer commands containing ``pattern`` (or matching it, with regex=True)."""
        self._rules.append(_Rule(pattern, output, exit_code, delay, regex))

    def set_failure(self, pattern: str, output: str = "", exit_code: int = 1) -> None:
        """Configure matching commands to fail."""
        self.set_response(pattern, output=output, exit_code=exit_code)

    def was_called_with(self, fragment: str) -> bool:
        return any(fragment in command for command in self.commands)

    async def execute(self, command: str, timeout: float = DEFAULT_TIMEOUT) -> CommandResult:
        self._call_log.append(CallRecord(command=command, timeout=timeout))

        for rule in self._rules:
            if rule.matches(command):
                if rule.delay:
                    await asyncio.sleep(rule.delay)
                return CommandResult(
                    command=command,
                    output=rule.output,
                    exit_code=rule.exit_code,
                    elapsed_time=rule.delay,
                )

        return CommandResult(
            command=command,
            output=self._default_output,
            exit_code=self._default_exit_code,
        )

    def reset(self) -> None:
        """Clear call log and custom responses."""
        self._call_log.clear()
        self._rules.clear()
