"""
CommandResult and OperationResult: the execution contract.

A CommandResult is what one Executor call produces. It is frozen after
creation; deciding whether it "succeeded" is the caller's business
(exit code, marker substrings), see ``hostctl.core.errors``.

An OperationResult is what a per-software domain operation returns
(create database, start service, ...). Operations never raise on
remote failure; they report it here.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Exit codes used by executors for failures that never reached the host
# or never finished there.
EXIT_CONNECTION_LOST = -1
EXIT_TIMEOUT = 124


class CommandResult(BaseModel):
    """Captured output of one remote command."""

    model_config = ConfigDict(frozen=True)

    command: str = ""
    output: str = ""
    exit_code: int = 0
    elapsed_time: float = 0.0   # seconds

    @property
    def ok(self) -> bool:
        """Exit code is zero."""
        return self.exit_code == 0

    @property
    def stripped(self) -> str:
        """Output with surrounding whitespace removed."""
        return self.output.strip()

    def lines(self) -> list[str]:
        """Non-empty, stripped output lines."""
        return [line.strip() for line in self.output.splitlines() if line.strip()]

    @classmethod
    def connection_lost(cls, command: str, message: str, elapsed: float = 0.0) -> CommandResult:
        return cls(
            command=command,
            output=message,
            exit_code=EXIT_CONNECTION_LOST,
            elapsed_time=elapsed,
        )

    @classmethod
    def timed_out(cls, command: str, partial: str, elapsed: float) -> CommandResult:
        return cls(
            command=command,
            output=partial,
            exit_code=EXIT_TIMEOUT,
            elapsed_time=elapsed,
        )


class OperationResult(BaseModel):
    """Outcome of a domain operation (start, create_database, backup...)."""

    ok: bool
    message: str = ""
    data: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def success(cls, message: str = "", **data: Any) -> OperationResult:
        return cls(ok=True, message=message, data=data)

    @classmethod
    def failure(cls, message: str, **data: Any) -> OperationResult:
        return cls(ok=False, message=message, data=data)
