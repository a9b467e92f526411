"""Observability: process-wide logging setup."""

from hostctl.core.observability.logging_config import setup_logging

__all__ = ["setup_logging"]
