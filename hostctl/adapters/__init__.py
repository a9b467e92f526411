"""Adapters: executors that run shell commands on a host.

Public re-exports for convenient access.
"""

from hostctl.adapters.base import DEFAULT_TIMEOUT, Executor
from hostctl.adapters.local import LocalExecutor
from hostctl.adapters.mock import MockExecutor
from hostctl.adapters.registry import ExecutorRegistry

__all__ = [
    "DEFAULT_TIMEOUT",
    "Executor",
    "ExecutorRegistry",
    "LocalExecutor",
    "MockExecutor",
]
