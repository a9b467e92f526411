"""
Executor base: the protocol contract between the core and a host.

Everything in hostctl talks to a machine through this interface and
never directly through a transport. A command is an opaque POSIX shell
string, not an argv list, so callers quote untrusted substrings
themselves (see ``hostctl.core.commands.quoting.shell_quote``).

Executors must tolerate overlapping calls: each command is a
fire-and-wait operation with its own timeout, run on its own channel.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from hostctl.core.models.result import CommandResult

DEFAULT_TIMEOUT = 30.0


class Executor(ABC):
    """Abstract base class for command executors.

    Executors perform remote side effects and return CommandResults.
    They NEVER raise for remote failures: a lost connection comes back
    with exit code -1, an expired timeout with 124 and whatever output
    arrived before it. No retry is performed here.

    Cancelling the awaiting task must stop the remote command (kill the
    process group, close the channel) before CancelledError propagates.

    To create a new executor:
        1. Subclass Executor
        2. Implement name, is_available, execute
        3. Register it in the ExecutorRegistry
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The executor identifier (e.g., 'local', 'ssh', 'mock')."""

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the executor can currently run commands.

        Should be fast and never raise.
        """

    @abstractmethod
    async def execute(self, command: str, timeout: float = DEFAULT_TIMEOUT) -> CommandResult:
        """Run ``command`` and capture merged stdout/stderr and exit code."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
