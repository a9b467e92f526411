"""
Local executor: run commands on this machine through /bin/sh.

Used by the CLI when no --host is given, and handy for pointing the
whole core at a container or VM you are logged into.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import signal
import time

from hostctl.adapters.base import DEFAULT_TIMEOUT, Executor
from hostctl.core.models.result import CommandResult

logger = logging.getLogger(__name__)


class LocalExecutor(Executor):
    """Execute shell commands locally with stderr merged into stdout.

    Each command runs in its own session (process group) so that a
    timeout or cancellation can kill the whole pipeline, not just sh.
    """

    @property
    def name(self) -> str:
        return "local"

    def is_available(self) -> bool:
        return shutil.which("sh") is not None

    async def execute(self, command: str, timeout: float = DEFAULT_TIMEOUT) -> CommandResult:
        logger.debug("Executing: %s (timeout=%ss)", command, timeout)
        start = time.monotonic()

        try:
            proc = await asyncio.create_subprocess_shell(
                command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                start_new_session=True,
            )
        except OSError as e:
            return CommandResult.connection_lost(command, f"Cannot start shell: {e}")

        chunks: list[bytes] = []

        async def _drain() -> None:
            assert proc.stdout is not None
            while chunk := await proc.stdout.read(4096):
                chunks.append(chunk)

        try:
            await asyncio.wait_for(asyncio.gather(_drain(), proc.wait()), timeout)
        except asyncio.TimeoutError:
            await self._kill(proc)
            elapsed = time.monotonic() - start
            logger.warning("Command timed out after %.1fs: %s", elapsed, command)
            return CommandResult.timed_out(command, _decode(chunks), elapsed)
        except asyncio.CancelledError:
            await self._kill(proc)
            logger.info("Command cancelled: %s", command)
            raise

        elapsed = time.monotonic() - start
        exit_code = proc.returncode if proc.returncode is not None else -1
        logger.debug("Exit %d in %.2fs: %s", exit_code, elapsed, command)
        return CommandResult(
            command=command,
            output=_decode(chunks),
            exit_code=exit_code,
            elapsed_time=elapsed,
        )

    @staticmethod
    async def _kill(proc: asyncio.subprocess.Process) -> None:
        """Kill the command's whole process group and reap it."""
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            return
        await proc.wait()


def _decode(chunks: list[bytes]) -> str:
    return b"".join(chunks).decode("utf-8", errors="replace")
