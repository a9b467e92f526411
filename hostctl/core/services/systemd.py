"""
Service control helper: systemd actions and state queries over an Executor.

Output from ``systemctl`` on a remote terminal can carry colour codes,
OSC title sequences and charset switches, so every state query is
sanitized with ``sanitize_output`` before it is compared.
"""

from __future__ import annotations

import logging
import re
from enum import StrEnum

from hostctl.adapters.base import Executor
from hostctl.core.commands.quoting import shell_quote
from hostctl.core.errors import is_nonempty, succeeded

logger = logging.getLogger(__name__)

ACTION_TIMEOUT = 30.0
QUERY_TIMEOUT = 10.0
EXISTS_TIMEOUT = 5.0


class ServiceAction(StrEnum):
    START = "start"
    STOP = "stop"
    RESTART = "restart"
    RELOAD = "reload"
    ENABLE = "enable"
    DISABLE = "disable"


# ── Output sanitizing ───────────────────────────────────────────

_ANSI_PATTERNS = [
    re.compile(r"(?:\x1B\[|\x9B)[\d;?]*[ -/]*[@-~]"),   # CSI
    re.compile(r"\x1B\][^\x07]*\x07"),                  # OSC ... BEL
    re.compile(r"\x1B[()][AB012]"),                     # charset switch
    re.compile(r"\x1B\[[0-9;]*[a-zA-Z]"),
]
_CONTROL_RE = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
_UNIT_RE = re.compile(r"^[A-Za-z0-9_.@:-]+$")


def strip_ansi(text: str) -> str:
    """Remove ANSI escape sequences and any stray ESC characters."""
    for pattern in _ANSI_PATTERNS:
        text = pattern.sub("", text)
    return text.replace("\x1B", "")


def sanitize_output(text: str) -> str:
    """ANSI-stripped, control-character-free, trimmed output."""
    return _CONTROL_RE.sub("", strip_ansi(text)).strip()


def _unit(name: str) -> str:
    """Plain unit names go in as-is; anything else is shell-quoted."""
    return name if _UNIT_RE.match(name) else shell_quote(name)


# ── Helper ──────────────────────────────────────────────────────


class SystemdHelper:
    """systemd operations for one host, through an injected Executor."""

    def __init__(self, executor: Executor):
        self.executor = executor

    async def execute_action(self, action: ServiceAction | str, name: str) -> bool:
        """``sudo systemctl ACTION NAME``; success is exit code 0."""
        action = ServiceAction(action)
        result = await self.executor.execute(
            f"sudo systemctl {action} {_unit(name)}", ACTION_TIMEOUT,
        )
        if not succeeded(result):
            logger.warning(
                "systemctl %s %s failed (exit %d): %s",
                action, name, result.exit_code, result.stripped[:200],
            )
        return succeeded(result)

    async def start(self, name: str) -> bool:
        return await self.execute_action(ServiceAction.START, name)

    async def stop(self, name: str) -> bool:
        return await self.execute_action(ServiceAction.STOP, name)

    async def restart(self, name: str) -> bool:
        return await self.execute_action(ServiceAction.RESTART, name)

    async def reload(self, name: str) -> bool:
        return await self.execute_action(ServiceAction.RELOAD, name)

    async def enable(self, name: str) -> bool:
        return await self.execute_action(ServiceAction.ENABLE, name)

    async def disable(self, name: str) -> bool:
        return await self.execute_action(ServiceAction.DISABLE, name)

    async def is_active(self, name: str) -> bool:
        result = await self.executor.execute(
            f"systemctl is-active {_unit(name)} 2>/dev/null", QUERY_TIMEOUT,
        )
        return sanitize_output(result.output) == "active"

    async def is_enabled(self, name: str) -> bool:
        result = await self.executor.execute(
            f"systemctl is-enabled {_unit(name)} 2>/dev/null", QUERY_TIMEOUT,
        )
        return sanitize_output(result.output) == "enabled"

    async def service_exists(self, name: str) -> bool:
        """Known to systemd as a loaded unit, or at least as a unit file."""
        unit = shell_quote(f"{name}.service")
        loaded = await self.executor.execute(
            f"systemctl list-units --full -all 2>/dev/null | grep -F {unit}", EXISTS_TIMEOUT,
        )
        if is_nonempty(loaded.output):
            return True
        files = await self.executor.execute(
            f"systemctl list-unit-files 2>/dev/null | grep -F {unit}", EXISTS_TIMEOUT,
        )
        return is_nonempty(files.output)

    async def status_message(self, name: str) -> str:
        result = await self.executor.execute(
            f"systemctl status {_unit(name)} --no-pager 2>/dev/null", QUERY_TIMEOUT,
        )
        return strip_ansi(result.output).strip()
