"""
SSH executor: run commands over an already-connected paramiko client.

Transport setup (authentication, host keys, jump hosts) belongs to the
caller; this adapter only needs a live ``paramiko.SSHClient``. Every
call opens its own exec channel, so overlapping commands never share
a shell and their output cannot interleave.
"""

from __future__ import annotations

import asyncio
import logging
import socket
import time

import paramiko

from hostctl.adapters.base import DEFAULT_TIMEOUT, Executor
from hostctl.core.models.result import CommandResult

logger = logging.getLogger(__name__)

_RECV_CHUNK = 32768


class ParamikoExecutor(Executor):
    """Execute shell commands on a remote host through paramiko exec channels."""

    def __init__(self, client: paramiko.SSHClient, executor_name: str = "ssh"):
        self._client = client
        self._name = executor_name

    @property
    def name(self) -> str:
        return self._name

    def is_available(self) -> bool:
        transport = self._client.get_transport()
        return transport is not None and transport.is_active()

    async def execute(self, command: str, timeout: float = DEFAULT_TIMEOUT) -> CommandResult:
        logger.debug("Executing over SSH: %s (timeout=%ss)", command, timeout)
        start = time.monotonic()

        transport = self._client.get_transport()
        if transport is None or not transport.is_active():
            return CommandResult.connection_lost(command, "SSH session is not connected")

        opened: list[paramiko.Channel] = []
        try:
            result = await asyncio.to_thread(self._run, transport, opened, command, timeout, start)
        except asyncio.CancelledError:
            # unblocks the worker's recv() and hangs up the remote process
            for channel in opened:
                channel.close()
            logger.info("Command cancelled: %s", command)
            raise

        logger.debug(
            "Exit %d in %.2fs: %s", result.exit_code, result.elapsed_time, command,
        )
        return result

    @staticmethod
    def _run(
        transport: paramiko.Transport,
        opened: list[paramiko.Channel],
        command: str,
        timeout: float,
        start: float,
    ) -> CommandResult:
        try:
            channel = transport.open_session(timeout=timeout)
        except (paramiko.SSHException, OSError) as e:
            logger.warning("Cannot open SSH channel: %s", e)
            return CommandResult.connection_lost(
                command, f"Cannot open SSH channel: {e}", time.monotonic() - start,
            )
        opened.append(channel)

        deadline = start + timeout
        chunks: list[bytes] = []
        try:
            channel.set_combine_stderr(True)
            channel.exec_command(command)
            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise socket.timeout()
                channel.settimeout(remaining)
                data = channel.recv(_RECV_CHUNK)
                if not data:
                    break
                chunks.append(data)
            exit_code = channel.recv_exit_status()
        except socket.timeout:
            elapsed = time.monotonic() - start
            logger.warning("Command timed out after %.1fs: %s", elapsed, command)
            return CommandResult.timed_out(command, _decode(chunks), elapsed)
        except (paramiko.SSHException, OSError) as e:
            logger.warning("SSH channel failed: %s", e)
            return CommandResult.connection_lost(
                command, f"SSH error: {e}", time.monotonic() - start,
            )
        finally:
            channel.close()

        return CommandResult(
            command=command,
            output=_decode(chunks),
            exit_code=exit_code,
            elapsed_time=time.monotonic() - start,
        )


def connect_client(
    host: str,
    username: str,
    port: int = 22,
    key_filename: str | None = None,
    timeout: float = 10.0,
) -> paramiko.SSHClient:
    """Open a paramiko client using the user's known_hosts and agent/keys.

    Raises paramiko.SSHException / OSError on failure; the CLI reports them.
    """
    client = paramiko.SSHClient()
    client.load_system_host_keys()
    client.set_missing_host_key_policy(paramiko.RejectPolicy())
    client.connect(
        host,
        port=port,
        username=username,
        key_filename=key_filename,
        timeout=timeout,
    )
    logger.info("SSH connection established to %s@%s:%d", username, host, port)
    return client


def _decode(chunks: list[bytes]) -> str:
    return b"".join(chunks).decode("utf-8", errors="replace")
