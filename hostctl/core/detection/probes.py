"""
Probe chains: ordered ``{command, predicate}`` pairs evaluated in order.

A chain stops at the first probe whose predicate accepts the command
output, so cheap and reliable signals go first and package-database
queries go last. Chains are plain data and easy to table-test.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from hostctl.adapters.base import Executor
from hostctl.core.errors import is_connection_lost, is_nonempty, is_timeout, parse_count
from hostctl.core.services.systemd import sanitize_output

logger = logging.getLogger(__name__)

PROBE_TIMEOUT = 10.0

Predicate = Callable[[str], bool]


# ── Predicates ──────────────────────────────────────────────────


def nonempty(output: str) -> bool:
    return is_nonempty(output)


def nonzero_count(output: str) -> bool:
    """``... | wc -l`` reported at least one line."""
    return parse_count(output) > 0


def equals(expected: str) -> Predicate:
    def check(output: str) -> bool:
        return sanitize_output(output) == expected
    return check


def contains(fragment: str) -> Predicate:
    def check(output: str) -> bool:
        return fragment.lower() in output.lower()
    return check


def any_line_in(*accepted: str) -> Predicate:
    """Some sanitized output line is one of ``accepted``."""
    def check(output: str) -> bool:
        return any(
            sanitize_output(line) in accepted for line in output.splitlines()
        )
    return check


# ── Chain ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class Probe:
    command: str
    predicate: Predicate = nonempty
    label: str = ""


@dataclass(frozen=True)
class ProbeOutcome:
    found: bool
    probe_index: int = -1
    label: str = ""


@dataclass
class ProbeChain:
    probes: list[Probe] = field(default_factory=list)
    timeout: float = PROBE_TIMEOUT

    async def run(self, executor: Executor) -> ProbeOutcome:
        """Evaluate probes sequentially; stop at the first positive one.

        A timed-out or disconnected probe counts as negative, whatever
        partial output it produced.
        """
        for index, probe in enumerate(self.probes):
            result = await executor.execute(probe.command, self.timeout)
            if is_timeout(result) or is_connection_lost(result):
                logger.debug(
                    "Probe %d (%s) got no answer (exit %d)",
                    index, probe.label or probe.command, result.exit_code,
                )
                continue
            if probe.predicate(result.output):
                logger.debug("Probe %d (%s) matched", index, probe.label or probe.command)
                return ProbeOutcome(found=True, probe_index=index, label=probe.label)
        return ProbeOutcome(found=False)

    def __len__(self) -> int:
        return len(self.probes)
