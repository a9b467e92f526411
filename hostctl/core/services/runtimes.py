"""
Language runtimes: Python and Node.js.

Runtimes have no long-lived unit; their status is ``installed`` and
control actions are refused.
"""

from __future__ import annotations

import re

from hostctl.core.services.base import SoftwareService

_NVM_VERSION_RE = re.compile(r"v(\d+\.\d+\.\d+)")


def parse_python_version(text: str) -> str:
    """``Python 3.12.3`` → ``3.12.3``."""
    return text.strip().replace("Python ", "")


def parse_nvm_list(text: str) -> list[str]:
    """Versions installed through nvm, unique and in listing order."""
    seen: list[str] = []
    for match in _NVM_VERSION_RE.finditer(text):
        if match.group(1) not in seen:
            seen.append(match.group(1))
    return seen


class PythonService(SoftwareService):
    has_unit = False

    async def active_version(self) -> str:
        result = await self.run("python3 --version 2>/dev/null || python --version 2>&1")
        return parse_python_version(result.output)


class NodeService(SoftwareService):
    has_unit = False

    async def active_version(self) -> str:
        result = await self.run("node --version 2>/dev/null")
        return result.stripped.lstrip("v")

    async def installed_versions(self) -> list[str]:
        """nvm-managed versions, or just the system node."""
        result = await self.run("bash -c 'source ~/.nvm/nvm.sh 2>/dev/null && nvm list'")
        versions = parse_nvm_list(result.output)
        if not versions:
            active = await self.active_version()
            versions = [active] if active else []
        return versions
