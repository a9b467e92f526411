"""
Tests for executors: mock, local, ssh and registry.
"""

import asyncio
import socket
import time

import paramiko

from hostctl.adapters.local import LocalExecutor
from hostctl.adapters.mock import MockExecutor
from hostctl.adapters.registry import ExecutorRegistry
from hostctl.adapters.ssh import ParamikoExecutor
from hostctl.core.models.result import EXIT_CONNECTION_LOST, EXIT_TIMEOUT

# ── Mock Executor Tests ──────────────────────────────────────────────


class TestMockExecutor:
    def test_default_success(self):
        mock = MockExecutor()
        result = asyncio.run(mock.execute("uptime"))
        assert result.ok
        assert result.output == ""
        assert mock.call_count == 1

    def test_substring_response(self):
        mock = MockExecutor()
        mock.set_response("nginx -v", "nginx version: nginx/1.24.0")
        result = asyncio.run(mock.execute("nginx -v 2>&1 | head -1"))
        assert "1.24.0" in result.output

    def test_regex_response(self):
        mock = MockExecutor()
        mock.set_response(r"^cat ", "content", regex=True)
        assert asyncio.run(mock.execute("cat /x")).output == "content"
        assert asyncio.run(mock.execute("sudo cat /x")).output == ""

    def test_first_rule_wins(self):
        mock = MockExecutor()
        mock.set_response("which", "first")
        mock.set_response("which nginx", "second")
        assert asyncio.run(mock.execute("which nginx")).output == "first"

    def test_set_failure(self):
        mock = MockExecutor()
        mock.set_failure("systemctl start", "Job failed")
        result = asyncio.run(mock.execute("sudo systemctl start nginx"))
        assert not result.ok
        assert result.exit_code == 1

    def test_call_log_records_timeout(self):
        mock = MockExecutor()
        asyncio.run(mock.execute("ls", 5.0))
        assert mock.call_log[0].command == "ls"
        assert mock.call_log[0].timeout == 5.0
        assert mock.was_called_with("ls")

    def test_reset(self):
        mock = MockExecutor()
        mock.set_failure("x")
        asyncio.run(mock.execute("x"))
        mock.reset()
        assert mock.call_count == 0
        assert asyncio.run(mock.execute("x")).ok

    def test_is_available(self):
        assert MockExecutor(available=True).is_available()
        assert not MockExecutor(available=False).is_available()


# ── Local Executor Tests ─────────────────────────────────────────────


class TestLocalExecutor:
    def test_name(self):
        assert LocalExecutor().name == "local"

    def test_echo(self):
        result = asyncio.run(LocalExecutor().execute("echo hello"))
        assert result.ok
        assert result.stripped == "hello"

    def test_stderr_merged(self):
        result = asyncio.run(LocalExecutor().execute("echo oops >&2"))
        assert "oops" in result.output

    def test_exit_code(self):
        result = asyncio.run(LocalExecutor().execute("exit 3"))
        assert result.exit_code == 3

    def test_timeout_keeps_partial_output(self):
        result = asyncio.run(LocalExecutor().execute("echo early; sleep 5", timeout=0.5))
        assert result.exit_code == EXIT_TIMEOUT
        assert "early" in result.output

    def test_concurrent_commands_do_not_interleave(self):
        executor = LocalExecutor()

        async def both():
            return await asyncio.gather(
                executor.execute("sleep 0.1; echo one"),
                executor.execute("echo two"),
            )

        first, second = asyncio.run(both())
        assert first.stripped == "one"
        assert second.stripped == "two"


# ── Registry Tests ───────────────────────────────────────────────────


class TestExecutorRegistry:
    def test_register_and_get(self):
        registry = ExecutorRegistry()
        mock = MockExecutor(executor_name="web1")
        registry.register(mock)
        assert registry.get("web1") is mock
        assert "web1" in registry.list_executors()

    def test_unknown_executor_is_connection_lost(self):
        registry = ExecutorRegistry()
        result = asyncio.run(registry.execute("nope", "ls"))
        assert result.exit_code == EXIT_CONNECTION_LOST

    def test_mock_mode_routes_everything_to_mock(self):
        mock = MockExecutor()
        registry = ExecutorRegistry()
        registry.register(LocalExecutor())
        registry.set_mock_mode(True, mock)
        asyncio.run(registry.execute("local", "rm -rf /tmp/never"))
        assert mock.was_called_with("rm -rf /tmp/never")

    def test_status(self):
        registry = ExecutorRegistry()
        registry.register(MockExecutor(executor_name="m", available=False))
        status = registry.status()
        assert status["m"]["available"] is False
        assert status["m"]["type"] == "MockExecutor"


# ── SSH Executor Tests ───────────────────────────────────────────────


class FakeChannel:
    """Stands in for a paramiko exec channel."""

    def __init__(self, chunks=(), exit_code=0, fail_with=None):
        self.chunks = list(chunks)
        self.exit_code = exit_code
        self.fail_with = fail_with
        self.command = None
        self.combined = False
        self.closed = False

    def set_combine_stderr(self, combine):
        self.combined = combine

    def exec_command(self, command):
        self.command = command

    def settimeout(self, timeout):
        pass

    def recv(self, size):
        if self.chunks:
            return self.chunks.pop(0)
        if self.fail_with is not None:
            raise self.fail_with
        return b""

    def recv_exit_status(self):
        return self.exit_code

    def close(self):
        self.closed = True


class FakeTransport:
    def __init__(self, channels, active=True):
        self.channels = list(channels)
        self.active = active
        self.opened = []

    def is_active(self):
        return self.active

    def open_session(self, timeout=None):
        channel = self.channels.pop(0)
        self.opened.append(channel)
        return channel


class FakeClient:
    def __init__(self, transport):
        self.transport = transport

    def get_transport(self):
        return self.transport


class TestParamikoExecutor:
    def test_output_and_exit_code(self):
        channel = FakeChannel([b"nginx ", b"version\n"], exit_code=3)
        executor = ParamikoExecutor(FakeClient(FakeTransport([channel])))
        result = asyncio.run(executor.execute("nginx -v", 5))
        assert result.output == "nginx version\n"
        assert result.exit_code == 3
        assert channel.command == "nginx -v"
        assert channel.combined
        assert channel.closed

    def test_undecodable_bytes_replaced(self):
        channel = FakeChannel([b"caf\xe9\n"])
        executor = ParamikoExecutor(FakeClient(FakeTransport([channel])))
        assert asyncio.run(executor.execute("cat menu", 5)).output == "caf�\n"

    def test_channel_per_command(self):
        transport = FakeTransport([FakeChannel([b"a"]), FakeChannel([b"b"])])
        executor = ParamikoExecutor(FakeClient(transport))

        async def scenario():
            return await asyncio.gather(executor.execute("one", 5), executor.execute("two", 5))

        results = asyncio.run(scenario())
        assert sorted(r.output for r in results) == ["a", "b"]
        assert len(transport.opened) == 2

    def test_timeout_keeps_partial_output(self):
        channel = FakeChannel([b"partial"], fail_with=socket.timeout())
        executor = ParamikoExecutor(FakeClient(FakeTransport([channel])))
        result = asyncio.run(executor.execute("tail -f log", 5))
        assert result.exit_code == EXIT_TIMEOUT
        assert result.output == "partial"

    def test_ssh_error_is_connection_lost(self):
        channel = FakeChannel(fail_with=paramiko.SSHException("channel closed"))
        executor = ParamikoExecutor(FakeClient(FakeTransport([channel])))
        result = asyncio.run(executor.execute("ls", 5))
        assert result.exit_code == EXIT_CONNECTION_LOST
        assert "channel closed" in result.output

    def test_inactive_transport(self):
        executor = ParamikoExecutor(FakeClient(FakeTransport([], active=False)))
        assert not executor.is_available()
        result = asyncio.run(executor.execute("ls", 5))
        assert result.exit_code == EXIT_CONNECTION_LOST

    def test_no_transport(self):
        executor = ParamikoExecutor(FakeClient(None))
        assert asyncio.run(executor.execute("ls", 5)).exit_code == EXIT_CONNECTION_LOST

    def test_slow_channel_open_leaves_loop_responsive(self):
        class StalledTransport(FakeTransport):
            def open_session(self, timeout=None):
                time.sleep(0.3)
                raise OSError("connection reset")

        executor = ParamikoExecutor(FakeClient(StalledTransport([])))
        ticks = []

        async def ticker():
            for _ in range(4):
                await asyncio.sleep(0.05)
                ticks.append(time.monotonic())

        async def scenario():
            tick_task = asyncio.create_task(ticker())
            result = await executor.execute("ls", 5)
            finished = time.monotonic()
            await tick_task
            return result, finished

        result, finished = asyncio.run(scenario())

        assert result.exit_code == EXIT_CONNECTION_LOST
        assert "connection reset" in result.output
        assert ticks[0] < finished
