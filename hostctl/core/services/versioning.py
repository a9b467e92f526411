"""
Version-string parsing shared by detectors and services.

Tools print their version in wildly different shapes; each software
declares an ordered list of regexes and the first capture wins.
"""

from __future__ import annotations

import re
from typing import Sequence

GENERIC_PATTERNS: tuple[str, ...] = (
    r"(\d+\.\d+\.\d+)",
    r"(\d+\.\d+)",
)


def first_version(text: str, patterns: Sequence[str] = GENERIC_PATTERNS) -> str:
    """First group-1 capture of the first pattern that matches ("" if none)."""
    for pattern in patterns:
        match = re.search(pattern, text, re.IGNORECASE)
        if match:
            return match.group(1)
    return ""


def parse_mysql_version(text: str) -> str:
    """``mysql --version``, MySQL or MariaDB flavoured."""
    patterns: list[str] = []
    if "mariadb" in text.lower():
        patterns.append(r"([0-9]+\.[0-9]+\.[0-9]+)-MariaDB")
    patterns += [
        r"Ver\s+(\d+\.\d+\.\d+)",
        r"Distrib\s+(\d+\.\d+\.\d+)",
        *GENERIC_PATTERNS,
    ]
    return first_version(text, patterns)


def parse_postgres_version(text: str) -> str:
    return first_version(text, (r"PostgreSQL\)?\s*([0-9]+\.[0-9]+)", *GENERIC_PATTERNS))


def parse_redis_version(text: str) -> str:
    """``redis-server --version`` prints ``... v=7.2.4 sha=...``."""
    return first_version(text, (r"v=([0-9.]+)", *GENERIC_PATTERNS))


def parse_nginx_version(text: str) -> str:
    return first_version(text, (r"nginx/(\d+\.\d+\.\d+)", *GENERIC_PATTERNS))


def parse_apache_version(text: str) -> str:
    """``Server version: Apache/2.4.58 (Ubuntu)``."""
    return first_version(text, (r"Apache/(\d+\.\d+\.\d+)", *GENERIC_PATTERNS))


def parse_mongodb_version(text: str) -> str:
    return first_version(text, (r"db version v(\d+\.\d+\.\d+)", *GENERIC_PATTERNS))
